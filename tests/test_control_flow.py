import ast
import unittest
from types import SimpleNamespace

from rendergen.compiler import compile_template
from rendergen.compiler.ir import (
    ForEach,
    ForOf,
    IfDirective,
    IRElement,
    IRSlot,
    IRText,
    parse_expression,
)
from rendergen.loader import load_template


def template(*children):
    return IRElement(tag="template", children=list(children))


def if_(source, modifier="true"):
    return IfDirective(parse_expression(source), modifier=modifier)


def elseif(source):
    return IfDirective(parse_expression(source), kind="elseif")


def text(source):
    return IRText(parse_expression(source))


def _flatten(children):
    flat = []
    for child in children:
        if isinstance(child, list):
            flat.extend(_flatten(child))
        else:
            flat.append(child)
    return flat


def _iterator(items, callback):
    items = list(items or [])
    rendered = []
    for index, value in enumerate(items):
        result = callback(value, index, index == 0, index == len(items) - 1)
        rendered.extend(result if isinstance(result, list) else [result])
    return rendered


def _element(tag, data, children):
    return {"tag": tag, "key": data["key"], "children": children}


def _slot(name, data, children, slotted):
    return list(slotted) if slotted else children


# Minimal render api: elements become dicts, text stays text
fake_api = SimpleNamespace(
    h=_element,
    t=lambda value: value,
    d=lambda value: "" if value is None else str(value),
    i=_iterator,
    f=_flatten,
    k=lambda key, value: f"{key}:{value}",
    b=lambda handler: handler,
    s=_slot,
    co=lambda value: None,
)


def render(root, slot_set=None, **props):
    compiled = compile_template(root, {"format": "function"})
    tmpl = load_template(compiled, {})
    return tmpl(fake_api, SimpleNamespace(**props), slot_set or {}, {})


def texts(nodes):
    """Text content of rendered nodes, depth first."""
    found = []
    for node in nodes:
        if node is None:
            continue
        if isinstance(node, list):
            found.extend(texts(node))
        elif isinstance(node, dict):
            found.extend(texts(node["children"]))
        else:
            found.append(node)
    return found


def function_defs(code):
    return {node.name: node for node in ast.walk(ast.parse(code)) if isinstance(node, ast.FunctionDef)}


class TestConditionals(unittest.TestCase):
    def _render_modifier(self, modifier, value):
        root = template(IRElement(tag="p", if_=if_("flag", modifier), children=[IRText("yes")]))
        return texts(render(root, flag=value))

    def test_true_modifier(self):
        self.assertEqual(self._render_modifier("true", 1), ["yes"])
        self.assertEqual(self._render_modifier("true", "x"), ["yes"])
        self.assertEqual(self._render_modifier("true", 0), [])
        self.assertEqual(self._render_modifier("true", None), [])

    def test_false_modifier(self):
        self.assertEqual(self._render_modifier("false", 0), ["yes"])
        self.assertEqual(self._render_modifier("false", True), [])

    def test_strict_true_modifier(self):
        self.assertEqual(self._render_modifier("strict-true", True), ["yes"])
        self.assertEqual(self._render_modifier("strict-true", 1), [])
        self.assertEqual(self._render_modifier("strict-true", "yes"), [])

    def test_generated_helper(self):
        code = compile_template(
            template(IRElement(tag="p", if_=if_("flag", "strict-true"), children=[IRText("yes")]))
        ).code
        self.assertIn(
            "def if1_0(_t):\n"
            "        return api_element('p', {'key': 0}, [api_text('yes')]) if _t is True else None",
            code,
        )
        self.assertIn("return [if1_0(instance.flag)]", code)

    def test_falsy_element_keeps_position(self):
        root = template(
            IRElement(tag="p", if_=if_("flag"), children=[IRText("a")]),
            IRElement(tag="p", children=[IRText("b")]),
        )
        nodes = render(root, flag=False)
        self.assertEqual(len(nodes), 2)
        self.assertIsNone(nodes[0])


class TestConditionalChains(unittest.TestCase):
    def chain(self):
        return template(
            IRElement(tag="p", if_=if_("first"), children=[IRText("a")]),
            IRText("\n  "),
            IRElement(tag="p", if_=elseif("second"), children=[IRText("b")]),
            IRText("\n  "),
            IRElement(tag="p", if_=IfDirective(kind="else"), children=[IRText("c")]),
        )

    def test_branches(self):
        root = self.chain()
        self.assertEqual(texts(render(root, first=True, second=True)), ["a"])
        self.assertEqual(texts(render(root, first=False, second=True)), ["b"])
        self.assertEqual(texts(render(root, first=False, second=False)), ["c"])

    def test_nested_helpers(self):
        code = compile_template(self.chain()).code
        defs = function_defs(code)

        outer = defs["if1_0"]
        self.assertIn(defs["if2_0"], outer.body)
        self.assertIn(
            "return [api_element('p', {'key': 0}, [api_text('a')])] if _t else if2_0(instance.second)",
            code,
        )
        self.assertIn(
            "return [api_element('p', {'key': 1}, [api_text('b')])] if _t else "
            "[api_element('p', {'key': 2}, [api_text('c')])]",
            code,
        )
        self.assertIn("return [*if1_0(instance.first)]", code)
        # whitespace between branches is dropped
        self.assertNotIn("api_text('\\n  ')", code)

    def test_chain_without_else(self):
        root = template(
            IRElement(tag="p", if_=if_("first"), children=[IRText("a")]),
            IRElement(tag="p", if_=elseif("second"), children=[IRText("b")]),
        )
        self.assertEqual(texts(render(root, first=False, second=False)), [])
        self.assertIn("if _t else []", compile_template(root).code)

    def test_template_branches(self):
        root = template(
            IRElement(
                tag="template",
                if_=if_("ready"),
                children=[IRElement(tag="h1", children=[IRText("Done")]), IRText("!")],
            ),
            IRElement(tag="template", if_=IfDirective(kind="else"), children=[IRText("Loading")]),
        )
        self.assertEqual(texts(render(root, ready=True)), ["Done", "!"])
        self.assertEqual(texts(render(root, ready=False)), ["Loading"])

    def test_elseif_test_is_evaluated_lazily(self):
        class Instance:
            first = True

            @property
            def second(self):
                raise AssertionError("elseif evaluated after a matching if")

        compiled = compile_template(
            template(
                IRElement(tag="p", if_=if_("first"), children=[IRText("a")]),
                IRElement(tag="p", if_=elseif("second"), children=[IRText("b")]),
            ),
            {"format": "function"},
        )
        tmpl = load_template(compiled, {})
        self.assertEqual(texts(tmpl(fake_api, Instance(), {}, {})), ["a"])


class TestTemplateFragments(unittest.TestCase):
    def test_fragment_children_are_spliced(self):
        root = template(
            IRElement(
                tag="template",
                children=[IRElement(tag="b", children=[IRText("x")]), IRText("y")],
            )
        )
        code = compile_template(root).code
        self.assertIn("return [api_element('b', {'key': 0}, [api_text('x')]), api_text('y')]", code)

    def test_conditional_fragment_evaluates_test_once(self):
        root = template(
            IRElement(
                tag="template",
                if_=if_("show"),
                children=[
                    IRElement(tag="p", children=[IRText("a")]),
                    IRElement(tag="p", children=[IRText("b")]),
                ],
            )
        )
        code = compile_template(root).code
        self.assertIn(
            "return [api_element('p', {'key': 0}, [api_text('a')]), "
            "api_element('p', {'key': 1}, [api_text('b')])] if _t else [None, None]",
            code,
        )
        self.assertIn("return [*if1_0(instance.show)]", code)
        self.assertEqual(texts(render(root, show=True)), ["a", "b"])
        self.assertEqual(render(root, show=False), [None, None])

    def test_conditional_fragment_single_child(self):
        root = template(
            IRElement(tag="template", if_=if_("show"), children=[IRElement(tag="p")]),
        )
        code = compile_template(root).code
        self.assertIn("return api_element('p', {'key': 0}, []) if _t else None", code)
        self.assertIn("return [if1_0(instance.show)]", code)

    def test_conditional_fragment_with_slot(self):
        root = template(
            IRElement(tag="template", if_=if_("show"), children=[IRSlot(slot_name="")]),
        )
        code = compile_template(root).code
        self.assertIn("return api_slot('', {'key': 0}, [], _slot0) if _t else []", code)
        self.assertEqual(render(root, slot_set={"": ["slotted"]}, show=True), ["slotted"])
        self.assertEqual(render(root, show=False), [])

    def test_iterated_fragment(self):
        root = template(
            IRElement(
                tag="ul",
                children=[
                    IRElement(
                        tag="template",
                        for_each=ForEach(parse_expression("items"), "item"),
                        children=[
                            IRElement(tag="li", children=[text("item")]),
                            IRElement(tag="li", children=[IRText("-")]),
                        ],
                    )
                ],
            )
        )
        code = compile_template(root).code
        self.assertIn(
            "def foreach1_0(item, *_):\n"
            "        return [api_element('li', {'key': 1}, [api_dynamic(item)]), "
            "api_element('li', {'key': 2}, [api_text('-')])]",
            code,
        )
        self.assertEqual(texts(render(root, items=["x", "y"])), ["x", "-", "y", "-"])


class TestIteration(unittest.TestCase):
    def test_for_each_with_index(self):
        root = template(
            IRElement(
                tag="ol",
                children=[
                    IRElement(
                        tag="li",
                        for_each=ForEach(parse_expression("rows"), "row", "i"),
                        for_key=parse_expression("row"),
                        children=[text("i"), IRText(". "), text("row")],
                    )
                ],
            )
        )
        nodes = render(root, rows=["a", "b"])
        (ol,) = nodes
        self.assertEqual([li["key"] for li in ol["children"]], ["1:a", "1:b"])
        self.assertEqual(texts(nodes), ["0", ". ", "a", "1", ". ", "b"])
        self.assertIn("def foreach1_0(row, i, *_):", compile_template(root).code)

    def test_empty_iterable(self):
        root = template(
            IRElement(tag="li", for_each=ForEach(parse_expression("rows"), "row"))
        )
        self.assertEqual(render(root, rows=[]), [])

    def test_for_of(self):
        root = template(
            IRElement(
                tag="ul",
                children=[
                    IRElement(
                        tag="li",
                        for_of=ForOf(parse_expression("items"), "it"),
                        children=[text("it.value"), text("it.first"), text("it.last")],
                    )
                ],
            )
        )
        code = compile_template(root).code
        self.assertTrue(code.startswith("from types import SimpleNamespace\n"))
        self.assertIn("def forof1_0(it_value, it_index, it_first, it_last):", code)
        self.assertIn(
            "it = SimpleNamespace(value=it_value, index=it_index, first=it_first, last=it_last)",
            code,
        )
        self.assertEqual(
            texts(render(root, items=["x", "y"])),
            ["x", "True", "False", "y", "False", "True"],
        )

    def test_if_inside_iteration_scope(self):
        root = template(
            IRElement(
                tag="div",
                for_each=ForEach(parse_expression("rows"), "row"),
                if_=if_("row.visible"),
                children=[text("row.name")],
            )
        )
        code = compile_template(root).code
        defs = function_defs(code)

        self.assertIn(defs["if2_0"], defs["foreach1_0"].body)
        self.assertIn("return if2_0(row.visible)", code)
        self.assertIn("return api_iterator(instance.rows, foreach1_0)", code)

        rows = [
            SimpleNamespace(name="a", visible=True),
            SimpleNamespace(name="b", visible=False),
            SimpleNamespace(name="c", visible=True),
        ]
        self.assertEqual(texts(render(root, rows=rows)), ["a", "c"])

    def test_property_shared_with_loop_is_hoisted_out(self):
        root = template(
            text("prefix"),
            IRElement(
                tag="li",
                for_each=ForEach(parse_expression("rows"), "row"),
                children=[text("prefix"), text("row")],
            ),
        )
        code = compile_template(root).code
        self.assertIn("_cv0_0 = instance.prefix", code)
        self.assertIn("[api_dynamic(_cv0_0), api_dynamic(row)]", code)
        self.assertEqual(code.count("instance.prefix"), 1)
        self.assertEqual(texts(render(root, rows=[1, 2], prefix="#")), ["#", "#", "1", "#", "2"])

    def test_loop_only_property_is_read_per_item(self):
        root = template(
            IRElement(
                tag="li",
                for_each=ForEach(parse_expression("rows"), "row"),
                children=[text("prefix"), text("row")],
            )
        )
        code = compile_template(root).code
        self.assertNotIn("_cv", code)
        self.assertIn("[api_dynamic(instance.prefix), api_dynamic(row)]", code)

    def test_nested_iteration(self):
        root = template(
            IRElement(
                tag="table",
                children=[
                    IRElement(
                        tag="tr",
                        for_each=ForEach(parse_expression("rows"), "row"),
                        children=[
                            IRElement(
                                tag="td",
                                for_each=ForEach(parse_expression("row.cells"), "cell"),
                                children=[text("cell")],
                            )
                        ],
                    )
                ],
            )
        )
        code = compile_template(root).code
        defs = function_defs(code)
        self.assertIn(defs["foreach2_0"], defs["foreach1_0"].body)
        self.assertIn("api_iterator(row.cells, foreach2_0)", code)

        rows = [SimpleNamespace(cells=[1, 2]), SimpleNamespace(cells=[3])]
        self.assertEqual(texts(render(root, rows=rows)), ["1", "2", "3"])


if __name__ == "__main__":
    unittest.main()
