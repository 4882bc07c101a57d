"""
Tests for the assistant: role-filtered tool catalog, single function call,
citations and error mapping.
"""
import json
from datetime import timedelta

import pytest

from retail_hub.errors import UpstreamError
from retail_hub.models import InventorySnapshot, Product, ShopifyOrder
from retail_hub.services import assistant
from retail_hub.services.assistant import tools_for_role
from retail_hub.utils import utcnow

from conftest import text_message, tool_call_message


def _tool_names(role):
    return {t["function"]["name"] for t in tools_for_role(role)}


def _seed_stock(db):
    low = Product(sku="DRS-RED-4", name="Red Summer Dress", min_stock=5)
    ok = Product(sku="SNK-BLU-28", name="Blue Sneakers", min_stock=2)
    db.add_all([low, ok])
    db.commit()
    now = utcnow()
    db.add_all([
        InventorySnapshot(product_id=low.id, stock_level=1, taken_at=now),
        InventorySnapshot(product_id=ok.id, stock_level=10, taken_at=now - timedelta(hours=1)),
    ])
    db.commit()


def test_tool_catalog_depends_on_role():
    assert _tool_names("sales") == {"get_sales", "get_order_status", "search_products"}
    assert _tool_names("warehouse") == {"get_inventory", "search_products"}
    assert _tool_names("admin") == set(assistant.FUNCTIONS)
    assert _tool_names(None) == set()


def test_low_stock_question_runs_one_inventory_call(client, db, auth_headers, fake_llm, monkeypatch):
    _seed_stock(db)
    fake = fake_llm(
        tool_call_message("get_inventory", json.dumps({"low_stock_only": True})),
        text_message("Red Summer Dress is running low (1 left)."),
    )
    sales_calls = []
    monkeypatch.setattr(assistant, "sales_detail", lambda *a, **kw: sales_calls.append(a))

    r = client.post("/api/ai/ask", json={"query": "show me low stock items"}, headers=auth_headers("warehouse"))
    assert r.status_code == 200
    data = r.json()
    assert data["answer"] == "Red Summer Dress is running low (1 left)."
    assert len(data["citations"]) == 1
    assert data["citations"][0]["source"] == "get_inventory"
    assert [i["sku"] for i in data["citations"][0]["data"]] == ["DRS-RED-4"]
    assert sales_calls == []

    first, second = fake.calls
    assert first["tool_choice"] == "auto"
    assert {t["function"]["name"] for t in first["tools"]} == {"get_inventory", "search_products"}
    assert "tools" not in second
    tool_message = second["messages"][-1]
    assert tool_message["role"] == "tool"
    assert tool_message["tool_call_id"] == "call_1"
    assert second["messages"][-2]["tool_calls"][0]["function"]["name"] == "get_inventory"


def test_only_first_tool_call_executed(db, fake_llm):
    _seed_stock(db)
    message = tool_call_message("search_products", json.dumps({"query": "dress"}))
    message.tool_calls.append(tool_call_message("get_inventory", "{}", call_id="call_2").tool_calls[0])
    fake_llm(message, text_message("Found it."))
    out = assistant.ask(db, "do we have the red dress?", "admin")
    assert [c["source"] for c in out["citations"]] == ["search_products"]
    assert out["citations"][0]["data"][0]["sku"] == "DRS-RED-4"


def test_answer_without_tool_call(client, auth_headers, fake_llm):
    fake = fake_llm(text_message("Hello! Ask me about sales or stock."))
    r = client.post("/api/ai/ask", json={"query": "hi"}, headers=auth_headers("sales"))
    assert r.status_code == 200
    assert r.json() == {"answer": "Hello! Ask me about sales or stock.", "citations": []}
    assert len(fake.calls) == 1


def test_get_sales_citation(db, fake_llm):
    db.add(ShopifyOrder(id=77, created_at=utcnow(), total_amount=120, payload={}))
    db.commit()
    fake_llm(tool_call_message("get_sales", json.dumps({"period": "day"})), text_message("120 today."))
    out = assistant.ask(db, "how much did we sell today?", "sales")
    data = out["citations"][0]["data"]
    assert data["total_shopify"] == 120.0
    assert data["shopify_orders"][0]["id"] == 77


def test_malformed_arguments_is_500(client, auth_headers, fake_llm):
    fake_llm(tool_call_message("get_inventory", "{not json"))
    r = client.post("/api/ai/ask", json={"query": "stock?"}, headers=auth_headers("warehouse"))
    assert r.status_code == 500
    assert r.json()["error"].startswith("Function execution error")


def test_function_outside_role_is_rejected(db, fake_llm):
    fake_llm(tool_call_message("get_sales", json.dumps({"period": "day"})))
    with pytest.raises(UpstreamError, match="unknown function get_sales"):
        assistant.ask(db, "sales today?", "warehouse")


def test_invalid_period_from_model_is_500(db, fake_llm):
    fake_llm(tool_call_message("get_sales", json.dumps({"period": "decade"})))
    with pytest.raises(UpstreamError, match="Invalid period"):
        assistant.ask(db, "sales?", "sales")


def test_empty_query_is_400(client, auth_headers, fake_llm):
    fake = fake_llm()
    r = client.post("/api/ai/ask", json={"query": "   "}, headers=auth_headers("admin"))
    assert r.status_code == 400
    assert r.json() == {"error": "Query is required"}
    r = client.post("/api/ai/ask", json={}, headers=auth_headers("admin"))
    assert r.status_code == 400
    assert fake.calls == []


def test_user_without_role_is_403(client, auth_headers):
    r = client.post("/api/ai/ask", json={"query": "hi"}, headers=auth_headers(None))
    assert r.status_code == 403
    assert r.json() == {"error": "No role assigned"}


def test_missing_openai_key_is_500(client, auth_headers, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    r = client.post("/api/ai/ask", json={"query": "hi"}, headers=auth_headers("admin"))
    assert r.status_code == 500
    assert r.json() == {"error": "OPENAI_API_KEY is not configured"}


def test_wrongly_typed_argument_is_json_500(client, auth_headers, fake_llm):
    fake_llm(tool_call_message("search_products", json.dumps({"query": "dress", "limit": "many"})))
    r = client.post("/api/ai/ask", json={"query": "find dresses"}, headers=auth_headers("sales"))
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json()["error"].startswith("Function execution error")
