"""
Unit tests for building Shopify payloads from cached examples.

Run: pytest tests/unit/test_template_applier.py -v
"""

from packages.domain.transformation.schemas import (
    CacheExample,
    CacheTemplate,
    ExampleSourceProduct,
    SourceProduct,
)
from packages.domain.transformation.template_applier import apply_template, build_title


def _template(*bodies: str) -> CacheTemplate:
    return CacheTemplate(
        category="Fretted",
        subcategory="Acoustic",
        brand="Yamaha",
        created_at="2025-01-01T00:00:00.000Z",
        examples=[
            CacheExample(
                source_product=ExampleSourceProduct(mfg="Yamaha", model=f"M{i}", category="Fretted",
                                                    subcategory="Acoustic"),
                shopify_product={"product": {
                    "title": f"Cached Title {i}",
                    "body_html": body,
                    "vendor": "Cached Vendor",
                    "product_type": "Cached Type",
                    "tags": "cached, tags",
                    "published": True,
                    "variants": [{"price": "1.00", "sku": "CACHED-SKU"}],
                    "images": [{"src": "x.jpg"}],
                }},
                cached_at=f"2025-01-0{i + 1}T00:00:00.000Z",
            )
            for i, body in enumerate(bodies)
        ],
    )


class TestApplyTemplate:
    """Tests for apply_template()"""

    def test_uses_most_recent_example(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)

        result = apply_template(product, _template("<p>old</p>", "<p>newest</p>"), {})

        assert result["product"]["body_html"] == "<p>newest</p>"

    def test_substitutes_placeholders_case_insensitively(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)
        body = "<p>{{MFG}} {{model}} {{Desc}} in {{category}} / {{SubCategory}}</p>"

        result = apply_template(product, _template(body), {})

        assert result["product"]["body_html"] == "<p>Yamaha FG830 Dreadnought in Fretted / Acoustic</p>"

    def test_title_is_derived_from_candidate(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)

        result = apply_template(product, _template("<p></p>"), {})

        assert result["product"]["title"] == "Yamaha FG830 Dreadnought"

    def test_variant_comes_from_candidate(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)

        result = apply_template(product, _template("<p></p>"), {})

        assert result["product"]["variants"] == [{
            "price": "249.5",
            "sku": "YAM-FG830",
            "inventory_quantity": 2,
            "barcode": "",
            "option1": "Default Title",
        }]

    def test_forces_draft_and_no_images(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)

        result = apply_template(product, _template("<p></p>"), {})

        assert result["product"]["published"] is False
        assert result["product"]["images"] == []

    def test_candidate_values_win_over_template(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)

        result = apply_template(product, _template("<p></p>"), {})

        assert result["product"]["vendor"] == "Yamaha"
        assert result["product"]["product_type"] == "Fretted"
        assert result["product"]["tags"] == "Fretted, Acoustic, Yamaha"

    def test_template_values_are_fallback(self):
        product = SourceProduct.from_record({"Model": "X1", "Sku": "X1"})

        result = apply_template(product, _template("<p></p>"), {})

        assert result["product"]["vendor"] == "Cached Vendor"
        assert result["product"]["product_type"] == "Cached Type"
        assert result["product"]["tags"] == "cached, tags"

    def test_template_is_not_modified(self, yamaha_fg830):
        product = SourceProduct.from_record(yamaha_fg830)
        template = _template("<p>{{mfg}}</p>")
        before = template.model_dump()

        apply_template(product, template, {})

        assert template.model_dump() == before


class TestBuildTitle:
    """Tests for build_title()"""

    def test_mapped_title_wins(self, yamaha_fs800):
        product = SourceProduct.from_record(yamaha_fs800)

        assert build_title(product, {"title": "Yamaha FS800 Guitar"}) == "Yamaha FS800 Guitar"

    def test_skips_missing_parts(self):
        product = SourceProduct.from_record({"Mfg": "Yamaha", "Desc": "  Guitar  "})

        assert build_title(product, {}) == "Yamaha Guitar"
