from shopcore.models import Product


def test_listing_skips_inactive_products(catalog_service, catalog):
    result = catalog_service.list_products()
    assert {p["id"] for p in result["items"]} == {"oil", "soap"}
    assert result["pagination"]["total"] == 2


def test_search_and_category_filter(catalog_service, catalog):
    assert [p["id"] for p in catalog_service.list_products(query="argan")["items"]] == ["oil"]
    assert [p["id"] for p in catalog_service.list_products(category="hair-care")["items"]] == ["oil"]


def test_product_detail_carries_sizes(catalog_service, catalog):
    product = catalog_service.get_product("oil")
    assert [s["size"] for s in product["sizes"]] == ["250ml", "500ml"]
    assert product["price"] == 100.0
    assert catalog_service.get_product("retired") == {}
    assert catalog_service.get_product("missing") == {}


def test_cache_is_dropped_on_invalidate(catalog_service, session_factory, catalog):
    assert catalog_service.list_products(query="soap")["items"][0]["stock_quantity"] == 10
    with session_factory() as session:
        session.get(Product, "soap").stock_quantity = 4
    assert catalog_service.list_products(query="soap")["items"][0]["stock_quantity"] == 10
    catalog_service.invalidate_cache()
    assert catalog_service.list_products(query="soap")["items"][0]["stock_quantity"] == 4


def test_price_range_and_sorting(catalog_service, catalog):
    cheap_first = catalog_service.list_products(sort_by="price", sort_order="asc")
    assert [p["id"] for p in cheap_first["items"]] == ["soap", "oil"]
    assert [p["id"] for p in catalog_service.list_products(min_price="60")["items"]] == ["oil"]
    assert [p["id"] for p in catalog_service.list_products(max_price=60)["items"]] == ["soap"]


def test_cache_drops_stale_and_oldest_entries(catalog_service, catalog):
    catalog_service._cache_max_entries = 2
    for term in ("argan", "neem", "oil"):
        catalog_service.list_products(query=term)
    assert len(catalog_service._cache) == 2
    assert not any(key[0] == "argan" for key in catalog_service._cache)

    catalog_service._cache_ttl_seconds = -1
    catalog_service.list_products(query="soap")
    assert [key[0] for key in catalog_service._cache] == ["soap"]
