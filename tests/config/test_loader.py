"""Tests for page definition loading and the page registry."""

import textwrap

import pytest
import yaml

from importer_kernel.exceptions import (
    CallbackResolutionError,
    FieldConfigurationError,
    OperationNotFoundError,
    PageNotFoundError,
)

from importer_config import (
    ImporterPage,
    PageRegistry,
    compile_field,
    compile_operation,
    compile_page,
    load_page_file,
    load_pages,
    resolve_callback,
)
from importer_ingestion.domain.types import FieldType


def shout(value, row):
    return value.upper()


PAGE_YAML = textwrap.dedent(
    """
    page_id: shop
    title: Shop Data
    operations:
      products_csv:
        type: import
        batch_size: 50
        process_callback: tests.config.test_loader:shout
        fields:
          sku: {label: SKU, required: true, unique: true}
          name: Product Name
          price: {type: number, required: true, minimum: "0.01"}
          tags: {separator: "|", options: [new, sale]}
    """
)


class TestCompileField:
    def test_shorthand_label(self):
        fdef = compile_field("name", "Product Name")
        assert fdef.label == "Product Name"
        assert fdef.type is FieldType.STRING

    def test_none_uses_defaults(self):
        assert compile_field("sku", None).label == "Sku"

    def test_numeric_strings_coerced(self):
        fdef = compile_field("price", {"type": "number", "minimum": "0.01", "max_length": "5"})
        assert fdef.minimum == 0.01
        assert fdef.max_length == 5

    def test_unknown_option(self):
        with pytest.raises(FieldConfigurationError):
            compile_field("sku", {"requird": True})

    def test_bad_number(self):
        with pytest.raises(FieldConfigurationError):
            compile_field("price", {"minimum": "cheap"})

    def test_callback_resolved(self):
        fdef = compile_field("name", {"process_callback": "tests.config.test_loader:shout"})
        assert fdef.process_callback is shout


class TestResolveCallback:
    def test_colon_form(self):
        assert resolve_callback("textwrap:dedent") is textwrap.dedent

    def test_dotted_form(self):
        assert resolve_callback("textwrap.dedent") is textwrap.dedent

    def test_callables_pass_through(self):
        assert resolve_callback(shout) is shout
        assert resolve_callback(None) is None

    def test_missing_module(self):
        with pytest.raises(CallbackResolutionError):
            resolve_callback("no_such_module_xyz:fn")

    def test_missing_attribute(self):
        with pytest.raises(CallbackResolutionError):
            resolve_callback("textwrap:no_such_fn")

    def test_not_callable(self):
        with pytest.raises(CallbackResolutionError):
            resolve_callback("tests.config.test_loader:PAGE_YAML")


class TestCompileOperation:
    def test_defaults(self):
        op = compile_operation("products_csv", {"fields": {"sku": None}})
        assert op.title == "Products csv"
        assert op.kind == "import"
        assert op.batch_size == 100
        assert op.skip_empty_rows is True

    def test_unknown_option(self):
        with pytest.raises(FieldConfigurationError):
            compile_operation("p", {"batchsize": 10})

    def test_sync_type(self):
        op = compile_operation("stripe", {"type": "sync", "data_callback": "textwrap:dedent"})
        assert op.kind == "sync"
        assert op.data_callback is textwrap.dedent


class TestPages:
    def test_compile_page(self):
        page = compile_page(yaml.safe_load(PAGE_YAML))
        op = page.get_operation("products_csv")
        assert page.title == "Shop Data"
        assert op.batch_size == 50
        assert op.process_callback is shout
        assert list(op.fields) == ["sku", "name", "price", "tags"]
        assert op.fields["tags"].options == ("new", "sale")

    def test_page_id_required(self):
        with pytest.raises(FieldConfigurationError):
            compile_page({"operations": {}})

    def test_unknown_operation(self):
        page = compile_page({"page_id": "shop"})
        with pytest.raises(OperationNotFoundError):
            page.get_operation("nope")

    def test_load_from_files(self, tmp_path):
        (tmp_path / "b_shop.yaml").write_text(PAGE_YAML, encoding="utf-8")
        (tmp_path / "a_blog.yml").write_text("page_id: blog\n", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        pages = load_pages(tmp_path)
        assert [p.page_id for p in pages] == ["blog", "shop"]
        assert load_page_file(tmp_path / "b_shop.yaml").page_id == "shop"


class TestPageRegistry:
    def test_register_and_lookup(self):
        registry = PageRegistry()
        registry.register(compile_page(yaml.safe_load(PAGE_YAML)))
        assert registry.has("shop")
        assert registry.get_operation("shop", "products_csv").batch_size == 50

    def test_missing_page(self):
        with pytest.raises(PageNotFoundError):
            PageRegistry().get("nope")

    def test_replace_logs_warning(self, captured_logs):
        registry = PageRegistry([ImporterPage("shop", {})])
        registry.register(ImporterPage("shop", {}, title="Again"))
        assert registry.get("shop").title == "Again"
        assert any(r["message"] == "page_replaced" for r in captured_logs())

    def test_unregister(self):
        registry = PageRegistry([ImporterPage("shop", {})])
        assert registry.unregister("shop") is True
        assert registry.unregister("shop") is False
        assert registry.all() == ()
