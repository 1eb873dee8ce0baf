"""
Unit tests for ViewIndexManager and design document loading.
"""

import json

import pytest
from conftest import json_body

from cbadmin.constants import ServiceType
from cbadmin.exceptions import ConfigurationError, ViewIndexError
from cbadmin.indexes.views import (
    DesignDocument,
    View,
    ViewIndexManager,
    load_design_document,
    validate_design_document,
)
from cbadmin.query.options import DesignDocumentNamespace, design_document_name

DEV = DesignDocumentNamespace.DEVELOPMENT
PROD = DesignDocumentNamespace.PRODUCTION

DDOC_BODY = {"views": {"by_city": {"map": "function (doc) { emit(doc.city, null); }"}}}


@pytest.fixture
def manager(http_provider) -> ViewIndexManager:
    return ViewIndexManager("travel", http_provider, default_timeout=5.0)


class TestDesignDocumentNames:
    def test_production_strips_prefix(self):
        assert design_document_name("dev_x", PROD) == "x"
        assert design_document_name("x", PROD) == "x"

    def test_development_adds_prefix_once(self):
        assert design_document_name("x", DEV) == "dev_x"
        assert design_document_name("dev_x", DEV) == "dev_x"

    def test_only_exact_prefix_is_stripped(self):
        assert design_document_name("devx", PROD) == "devx"


class TestDesignDocument:
    def test_to_json_skips_empty_fields(self):
        ddoc = DesignDocument("x", {"a": View(map="m"), "b": View(map="m", reduce="_count")})
        assert ddoc.to_json() == {
            "views": {"a": {"map": "m"}, "b": {"map": "m", "reduce": "_count"}}
        }
        assert ddoc.views["b"].has_reduce is True

    def test_empty_document(self):
        assert DesignDocument("x").to_json() == {}

    def test_validate_rejects_unknown_view_fields(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_design_document({"name": "x", "views": {"a": {"mapper": "m"}}})
        assert exc_info.value.config_key == "views.a"

    def test_load_design_document(self, tmp_path):
        path = tmp_path / "ddoc.json"
        path.write_text(json.dumps({"name": "cities", **DDOC_BODY}))

        ddoc = load_design_document(path)

        assert ddoc.name == "cities"
        assert "by_city" in ddoc.views

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "ddoc.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_design_document(path)


class TestViewIndexManager:
    @pytest.mark.asyncio
    async def test_get_development_document(self, manager, http_provider):
        http_provider.add_json(DDOC_BODY)

        ddoc = await manager.get_design_document("cities", DEV)

        request = http_provider.last_request
        assert request.service == ServiceType.VIEWS
        assert request.path == "/travel/_design/dev_cities"
        assert ddoc.name == "cities"
        assert ddoc.views["by_city"].map.startswith("function")

    @pytest.mark.asyncio
    async def test_get_missing_document(self, manager, http_provider):
        http_provider.add_text('{"error":"not_found","reason":"missing"}', status_code=404)

        with pytest.raises(ViewIndexError) as exc_info:
            await manager.get_design_document("ghost")

        assert exc_info.value.index_missing is True
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_all_filters_namespace(self, manager, http_provider):
        rows = {
            "rows": [
                {"doc": {"meta": {"id": "_design/dev_a"}, "json": DDOC_BODY}},
                {"doc": {"meta": {"id": "_design/b"}, "json": DDOC_BODY}},
            ]
        }
        http_provider.add_json(rows).add_json(rows)

        production = await manager.get_all_design_documents()
        development = await manager.get_all_design_documents(DEV)

        assert [d.name for d in production] == ["b"]
        assert [d.name for d in development] == ["a"]
        request = http_provider.last_request
        assert request.service == ServiceType.MANAGEMENT
        assert request.path == "/pools/default/buckets/travel/ddocs"

    @pytest.mark.asyncio
    async def test_upsert(self, manager, http_provider):
        http_provider.add_text('{"ok":true}', status_code=201)

        await manager.upsert_design_document(DesignDocument.from_json("cities", DDOC_BODY), DEV)

        request = http_provider.last_request
        assert request.method == "PUT"
        assert request.path == "/travel/_design/dev_cities"
        assert request.is_idempotent is True
        assert json_body(request) == DDOC_BODY

    @pytest.mark.asyncio
    async def test_upsert_rejected(self, manager, http_provider):
        http_provider.add_text('{"error":"invalid_design_document"}', status_code=400)
        with pytest.raises(ViewIndexError):
            await manager.upsert_design_document(DesignDocument("cities"))

    @pytest.mark.asyncio
    async def test_drop_missing(self, manager, http_provider):
        http_provider.add_text('{"error":"not_found"}', status_code=404)
        with pytest.raises(ViewIndexError) as exc_info:
            await manager.drop_design_document("cities")
        assert exc_info.value.index_missing is True
        assert http_provider.last_request.method == "DELETE"

    @pytest.mark.asyncio
    async def test_publish(self, manager, http_provider):
        http_provider.add_json(DDOC_BODY).add_text('{"ok":true}', status_code=201)

        await manager.publish_design_document("dev_cities")

        get, put = http_provider.requests
        assert get.path == "/travel/_design/dev_cities"
        assert put.path == "/travel/_design/cities"
        assert json_body(put) == DDOC_BODY
        assert put.deadline == get.deadline

    @pytest.mark.asyncio
    async def test_publish_missing_development_document(self, manager, http_provider):
        http_provider.add_text('{"error":"not_found"}', status_code=404)

        with pytest.raises(ViewIndexError) as exc_info:
            await manager.publish_design_document("cities")

        assert exc_info.value.index_missing is True
        assert exc_info.value.message == "Development design document does not exist"
        assert len(http_provider.requests) == 1
