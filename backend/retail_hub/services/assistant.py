"""
Natural-language assistant: the model picks one of the data functions, the
handler runs it against the datastore and feeds the result back for a
second completion that produces the answer.

Flow: first completion (with the role's tool catalog) -> at most one tool call
-> local function -> second completion -> {answer, citations}.
"""
import json
import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from retail_hub.errors import InputError, UpstreamError
from retail_hub.services import llm_client
from retail_hub.services.inventory import inventory_items, search_products
from retail_hub.services.sales import sales_detail, order_status

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant for a children's retail company. You can help with "
    "sales data, order lookups and inventory management. Always provide clear, actionable insights."
)
ANSWER_PROMPT = (
    "You are a helpful assistant for a children's retail company. "
    "Provide clear, actionable insights based on the data."
)

SALES_ROLES = ("sales", "admin")
WAREHOUSE_ROLES = ("warehouse", "admin")
ALL_ROLES = ("sales", "warehouse", "admin")


def _get_sales(db: Session, args: dict) -> Any:
    return sales_detail(db, args.get("period") or "day")


def _get_inventory(db: Session, args: dict) -> Any:
    return inventory_items(
        db,
        product_sku=args.get("product_sku") or None,
        low_stock_only=bool(args.get("low_stock_only")),
    )


def _get_order_status(db: Session, args: dict) -> Any:
    return order_status(db, str(args.get("order_ref") or ""))


def _search_products(db: Session, args: dict) -> Any:
    limit = int(args.get("limit") or 5)
    return search_products(db, str(args.get("query") or ""), limit=max(1, min(limit, 20)))


# name -> (description, JSON schema, allowed roles, implementation)
FUNCTIONS: dict[str, tuple[str, dict, tuple[str, ...], Callable[[Session, dict], Any]]] = {
    "get_sales": (
        "Get sales totals and orders from both channels for a period",
        {
            "type": "object",
            "properties": {
                "period": {
                    "type": "string",
                    "enum": ["day", "week", "month"],
                    "description": "Time period for sales data",
                },
            },
            "required": ["period"],
        },
        SALES_ROLES,
        _get_sales,
    ),
    "get_inventory": (
        "Get current stock for specific products or all products",
        {
            "type": "object",
            "properties": {
                "product_sku": {"type": "string", "description": "Optional SKU to filter a specific product"},
                "low_stock_only": {"type": "boolean", "description": "Whether to return only low stock items"},
            },
        },
        WAREHOUSE_ROLES,
        _get_inventory,
    ),
    "get_order_status": (
        "Look up the status of a single order by order number or platform order id",
        {
            "type": "object",
            "properties": {
                "order_ref": {"type": "string", "description": "Order number or platform order id"},
            },
            "required": ["order_ref"],
        },
        SALES_ROLES,
        _get_order_status,
    ),
    "search_products": (
        "Find products by (partial) name or SKU, with their current stock",
        {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Product name or SKU to search for"},
                "limit": {"type": "integer", "description": "Maximum number of matches", "minimum": 1, "maximum": 20},
            },
            "required": ["query"],
        },
        ALL_ROLES,
        _search_products,
    ),
}


def tools_for_role(role: str) -> list[dict]:
    """Tool definitions the given role may call, in Chat Completions format."""
    return [
        {
            "type": "function",
            "function": {"name": name, "description": desc, "parameters": schema},
        }
        for name, (desc, schema, roles, _) in FUNCTIONS.items()
        if role in roles
    ]


def dispatch(db: Session, name: str, arguments: str, role: str) -> Any:
    """Parse the model's argument JSON and run the named function."""
    entry = FUNCTIONS.get(name)
    if entry is None or role not in entry[2]:
        raise UpstreamError(f"Function execution error: unknown function {name}")
    try:
        args = json.loads(arguments or "{}")
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Function execution error: {e}") from e
    if not isinstance(args, dict):
        raise UpstreamError("Function execution error: arguments must be a JSON object")
    try:
        return entry[3](db, args)
    except InputError as e:
        raise UpstreamError(f"Function execution error: {e.message}") from e
    except (ValueError, TypeError) as e:
        # model-supplied argument values of the wrong type
        raise UpstreamError(f"Function execution error: {e}") from e


def ask(db: Session, query: str, role: str) -> dict[str, Any]:
    """Answer a free-text question; citations name the function that ran and its data."""
    query = (query or "").strip()
    if not query:
        raise InputError("Query is required")

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": query},
    ]
    message = llm_client.chat(messages, tools=tools_for_role(role))
    tool_calls = getattr(message, "tool_calls", None) or []
    if not tool_calls:
        return {"answer": message.content, "citations": []}

    call = tool_calls[0]
    name = call.function.name
    logger.info("assistant_function_call", extra={"function": name, "role": role})
    result = dispatch(db, name, call.function.arguments, role)

    followup = [
        {"role": "system", "content": ANSWER_PROMPT},
        {"role": "user", "content": query},
        {
            "role": "assistant",
            "content": message.content,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": name, "arguments": call.function.arguments},
                }
            ],
        },
        {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result, default=str)},
    ]
    answer = llm_client.chat(followup)
    return {
        "answer": answer.content,
        "citations": [{"source": name, "data": result}],
    }
