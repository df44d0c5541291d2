"""
Product query helper tests.

Verifies:
- Search is case-insensitive and blank queries are identity
- Filters are ANDed and skip unset predicates
- Sorting is stable in both directions
- Pagination covers every item exactly once
- Stats and related-product selection
"""

import pytest

from storefront.services.product_query_service import (
    ProductFilter,
    compute_product_stats,
    filter_products,
    generate_slug,
    paginate_products,
    search_products,
    select_related,
    sort_products,
)


def _product(pid, name, price, category="camisetas", **extra):
    product = {
        "id": pid,
        "name": name,
        "description": extra.pop("description", ""),
        "price": price,
        "category": category,
        "category_name": category.capitalize(),
        "condition": extra.pop("condition", "usado"),
        "sizes": extra.pop("sizes", []),
        "tags": extra.pop("tags", []),
        "gender": extra.pop("gender", None),
        "created_at": extra.pop("created_at", "2024-01-01T00:00:00Z"),
    }
    product.update(extra)
    return product


@pytest.fixture()
def products():
    return [
        _product("1", "Camiseta Roja", 30000, sizes=["M", "L"], tags=["rojo"], gender="unisex",
                 created_at="2024-01-03T00:00:00Z"),
        _product("2", "camiseta azul", 20000, sizes=["S"], tags=["azul"], condition="nuevo",
                 created_at="2024-01-01T00:00:00Z"),
        _product("3", "Jean Slim", 90000, category="pantalones", sizes=["32"], tags=["denim"],
                 gender="hombre", description="Jean de corte recto", created_at="2024-01-02T00:00:00Z"),
        _product("4", "Bolso Tejido", 20000, category="accesorios", gender="mujer",
                 created_at="2024-01-04T00:00:00Z"),
    ]


# =============================================================================
# SEARCH
# =============================================================================


class TestSearch:

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_blank_query_is_identity(self, products, query):
        assert search_products(products, query) == products

    def test_case_insensitive_name_match(self, products):
        upper = [p["id"] for p in search_products(products, "CAMISETA")]
        lower = [p["id"] for p in search_products(products, "camiseta")]
        assert upper == lower == ["1", "2"]

    def test_matches_description_tags_and_category(self, products):
        assert [p["id"] for p in search_products(products, "corte")] == ["3"]
        assert [p["id"] for p in search_products(products, "AZUL")] == ["2"]
        assert [p["id"] for p in search_products(products, "accesorios")] == ["4"]

    def test_query_is_trimmed(self, products):
        assert [p["id"] for p in search_products(products, "  jean ")] == ["3"]

    @pytest.mark.parametrize("query", ["a", "camiseta", "zzz", "20000"])
    def test_result_is_subset(self, products, query):
        result = search_products(products, query)
        assert all(p in products for p in result)


# =============================================================================
# FILTER
# =============================================================================


class TestFilter:

    def test_no_filter_returns_everything(self, products):
        assert filter_products(products, ProductFilter()) == products
        assert filter_products(products, None) == products

    @pytest.mark.parametrize(
        "present",
        [
            {"category": "camisetas"},
            {"min_price": 25000},
            {"sizes": ["M"]},
            {"tags": ["denim"]},
            {"gender": "hombre"},
        ],
    )
    def test_absent_predicate_same_as_omitted(self, products, present):
        explicit_none = ProductFilter(**present, condition=None, max_price=None)
        assert filter_products(products, explicit_none) == filter_products(products, ProductFilter(**present))

    def test_price_bounds_are_inclusive(self, products):
        result = filter_products(products, ProductFilter(min_price=20000, max_price=30000))
        assert [p["id"] for p in result] == ["1", "2", "4"]

    def test_zero_min_price_is_a_real_bound(self, products):
        assert len(filter_products(products, ProductFilter(min_price=0))) == 4
        assert filter_products(products, ProductFilter(max_price=0)) == []

    def test_predicates_are_anded(self, products):
        flt = ProductFilter(category="camisetas", max_price=25000)
        assert [p["id"] for p in filter_products(products, flt)] == ["2"]

    def test_sizes_match_any(self, products):
        result = filter_products(products, ProductFilter(sizes=["L", "32"]))
        assert [p["id"] for p in result] == ["1", "3"]

    def test_tags_match_any(self, products):
        result = filter_products(products, ProductFilter(tags=["azul", "denim"]))
        assert [p["id"] for p in result] == ["2", "3"]

    def test_gender_keeps_products_without_gender(self, products):
        result = filter_products(products, ProductFilter(gender="mujer"))
        assert [p["id"] for p in result] == ["2", "4"]

    def test_condition_exact_match(self, products):
        assert [p["id"] for p in filter_products(products, ProductFilter(condition="nuevo"))] == ["2"]


# =============================================================================
# SORT
# =============================================================================


class TestSort:

    def test_price_ascending_keeps_tie_order(self, products):
        assert [p["id"] for p in sort_products(products, "price", "asc")] == ["2", "4", "1", "3"]

    def test_price_descending_keeps_tie_order(self, products):
        assert [p["id"] for p in sort_products(products, "price", "desc")] == ["3", "1", "2", "4"]

    def test_name_sort_ignores_case(self, products):
        names = [p["name"] for p in sort_products(products, "name")]
        assert names == ["Bolso Tejido", "camiseta azul", "Camiseta Roja", "Jean Slim"]

    def test_created_at_sort(self, products):
        assert [p["id"] for p in sort_products(products, "created_at", "desc")] == ["4", "1", "3", "2"]

    @pytest.mark.parametrize("key", ["name", "price", "created_at"])
    @pytest.mark.parametrize("order", ["asc", "desc"])
    def test_sort_is_idempotent(self, products, key, order):
        once = sort_products(products, key, order)
        assert sort_products(once, key, order) == once

    def test_unknown_key_keeps_order_and_copies(self, products):
        result = sort_products(products, "popularity")
        assert result == products
        assert result is not products


# =============================================================================
# PAGINATE
# =============================================================================


class TestPaginate:

    @pytest.mark.parametrize("limit", [1, 2, 3, 4, 5])
    def test_pages_cover_every_item_once(self, products, limit):
        first = paginate_products(products, 1, limit)
        seen = []
        for page in range(1, first["total_pages"] + 1):
            seen.extend(p["id"] for p in paginate_products(products, page, limit)["products"])
        assert seen == [p["id"] for p in products]

    def test_metadata(self, products):
        result = paginate_products(products, 2, 3)
        assert result["total_pages"] == 2
        assert result["current_page"] == 2
        assert result["total_items"] == 4
        assert [p["id"] for p in result["products"]] == ["4"]

    def test_page_past_end_is_empty(self, products):
        result = paginate_products(products, 9, 3)
        assert result["products"] == []
        assert result["total_pages"] == 2

    def test_empty_list(self):
        result = paginate_products([], 1, 12)
        assert result == {"products": [], "total_pages": 0, "current_page": 1, "total_items": 0}


# =============================================================================
# STATS / RELATED / SLUG
# =============================================================================


class TestStatsAndRelated:

    def test_stats(self, products):
        stats = compute_product_stats(products)
        assert stats["total"] == 4
        assert stats["by_category"] == {"Camisetas": 2, "Pantalones": 1, "Accesorios": 1}
        assert stats["price_range"] == {"min": 20000, "max": 90000}
        assert stats["conditions"] == ["usado", "nuevo"]
        assert stats["sizes"] == ["32", "L", "M", "S"]

    def test_stats_of_empty_list(self):
        stats = compute_product_stats([])
        assert stats["total"] == 0
        assert stats["price_range"] == {"min": None, "max": None}
        assert stats["sizes"] == []

    def test_related_prefers_same_category_and_excludes_self(self, products):
        related = select_related(products, products[0], limit=2)
        assert [p["id"] for p in related] == ["2", "3"]

    def test_related_pads_from_other_categories(self):
        catalog = [
            _product("a", "A", 1, category="camisetas"),
            _product("b", "B", 1, category="camisetas"),
            _product("c", "C", 1, category="pantalones"),
            _product("d", "D", 1, category="accesorios"),
            _product("e", "E", 1, category="pantalones"),
            _product("f", "F", 1, category="chaquetas"),
        ]
        related = select_related(catalog, catalog[0], limit=4)
        assert [p["id"] for p in related] == ["b", "c", "d", "e"]

    def test_related_respects_limit(self, products):
        assert len(select_related(products, products[0], limit=1)) == 1
        assert all(p["id"] != "1" for p in select_related(products, products[0], limit=10))

    @pytest.mark.parametrize(
        "text,slug",
        [
            ("Camisa Clásica  Niño!", "camisa-clasica-nino"),
            ("Jean Levi's 501", "jean-levis-501"),
            ("  Bolso -- Tejido ", "bolso-tejido"),
        ],
    )
    def test_generate_slug(self, text, slug):
        assert generate_slug(text) == slug
