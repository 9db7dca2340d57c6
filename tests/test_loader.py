import os
import types
import unittest
from types import SimpleNamespace

from rendergen.compiler import compile_template
from rendergen.compiler.ir import (
    AttributeType,
    IRAttribute,
    IRComponent,
    IRElement,
    SVG_NAMESPACE,
    parse_expression,
)
from rendergen.loader import ModuleRegistry, TemplateLoader, import_reference, load_template


def template(*children):
    return IRElement(tag="template", children=list(children))


def custom_element(tag, ctor, data, children):
    return {"tag": tag, "ctor": ctor, "props": data.get("props", {})}


api = SimpleNamespace(c=custom_element, h=lambda tag, data, children: {"tag": tag, "data": data})


class Greeting:
    pass


class TestLoadTemplate(unittest.TestCase):
    def test_components_come_from_modules(self):
        compiled = compile_template(
            template(
                IRComponent(
                    tag="x-greeting",
                    component="ui.greeting:Greeting",
                    props={"name": IRAttribute("name", parse_expression("user"), AttributeType.EXPRESSION)},
                )
            ),
            {"format": "function"},
        )
        tmpl = load_template(compiled, {"ui.greeting:Greeting": Greeting})
        (node,) = tmpl(api, SimpleNamespace(user="Ada"), {}, {})

        self.assertIs(node["ctor"], Greeting)
        self.assertEqual(node["props"], {"name": "Ada"})
        self.assertEqual(tmpl.stylesheets, [])

    def test_missing_references_are_imported(self):
        compiled = compile_template(
            template(IRComponent(tag="x-ns", component="types:SimpleNamespace")),
            {"format": "function"},
        )
        (node,) = load_template(compiled)(api, SimpleNamespace(), {}, {})
        self.assertIs(node["ctor"], types.SimpleNamespace)

    def test_runtime_helper_from_modules(self):
        calls = []

        def sanitize_attribute(tag, namespace, name, value):
            calls.append((tag, name, value))
            return value

        compiled = compile_template(
            template(
                IRElement(
                    tag="use",
                    namespace=SVG_NAMESPACE,
                    attrs={"href": IRAttribute("href", "/icons.svg", AttributeType.STRING)},
                )
            ),
            {"format": "function"},
        )
        tmpl = load_template(compiled, {"engine:sanitize_attribute": sanitize_attribute})
        (node,) = tmpl(api, SimpleNamespace(), {}, {})

        self.assertEqual(calls, [("use", "href", "/icons.svg")])
        self.assertEqual(node["data"]["attrs"], {"href": "/icons.svg"})

    def test_module_format_is_rejected(self):
        compiled = compile_template(template())
        with self.assertRaises(ValueError):
            load_template(compiled)

    def test_loader_cache(self):
        loader = TemplateLoader()
        compiled = compile_template(template(), {"format": "function"})

        first = loader.load(compiled)
        self.assertIs(loader.load(compiled), first)
        self.assertIsNot(loader.load(compiled, use_cache=False), first)

        loader.clear()
        self.assertIsNot(loader.load(compiled), first)


class TestImportReference(unittest.TestCase):
    def test_import(self):
        self.assertIs(import_reference("types:SimpleNamespace"), types.SimpleNamespace)
        self.assertIs(import_reference("os:path.join"), os.path.join)

    def test_invalid_reference(self):
        with self.assertRaises(ValueError):
            import_reference("types")

    def test_registry_caches_imports(self):
        registry = ModuleRegistry()
        self.assertIs(registry["types:SimpleNamespace"], types.SimpleNamespace)
        self.assertIn("types:SimpleNamespace", registry)


if __name__ == "__main__":
    unittest.main()
