"""Database Query capability against a throwaway SQLite file."""

import pytest
import pytest_asyncio

from helpers import action, chain, trigger
from relayflow.capabilities.builtin.database_query import database_query, dispose_engines
from relayflow.types import WorkflowRunInput


@pytest_asyncio.fixture
async def db_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'crm.db'}"
    await database_query({
        "databaseUrl": url,
        "query": "CREATE TABLE contacts (id INTEGER PRIMARY KEY, phone TEXT, plan TEXT)",
    })
    await database_query({
        "databaseUrl": url,
        "query": "INSERT INTO contacts (phone, plan) VALUES ('+5511987654321', 'gold'), ('+15550001', 'free')",
    })
    yield url
    await dispose_engines()


@pytest.mark.asyncio
async def test_select_with_params(db_url):
    result = await database_query({
        "databaseUrl": db_url,
        "query": "SELECT phone, plan FROM contacts WHERE plan = :plan",
        "params": {"plan": "gold"},
    })
    assert result == {"rows": [{"phone": "+5511987654321", "plan": "gold"}], "rowCount": 1}


@pytest.mark.asyncio
async def test_params_as_json_string(db_url):
    result = await database_query({
        "databaseUrl": db_url,
        "query": "SELECT COUNT(*) AS n FROM contacts WHERE plan != :plan",
        "params": '{"plan": "gold"}',
    })
    assert result["rows"] == [{"n": 1}]


@pytest.mark.asyncio
async def test_update_reports_affected_rows(db_url):
    result = await database_query({
        "databaseUrl": db_url,
        "query": "UPDATE contacts SET plan = 'pro' WHERE plan = 'free'",
    })
    assert result == {"rows": [], "rowCount": 1}


@pytest.mark.asyncio
async def test_missing_query():
    assert await database_query({"query": "  "}) == {
        "success": False, "error": "Database Query requires a query.",
    }


@pytest.mark.asyncio
async def test_params_must_be_an_object():
    result = await database_query({"query": "SELECT 1", "params": [1, 2]})
    assert result == {"success": False, "error": "Database Query params must be an object."}


@pytest.mark.asyncio
async def test_query_node_resolves_templates(executor, db_url):
    nodes = [
        trigger("t1"),
        action(
            "q", "Database Query", label="Lookup",
            databaseUrl=db_url,
            query="SELECT plan FROM contacts WHERE phone = '{{@t1:Start.from}}'",
        ),
        action("c", "Condition", condition="{{@q:Lookup.rows.0.plan}} === 'gold'"),
    ]
    result = await executor.execute(WorkflowRunInput(
        nodes=nodes, edges=chain("t1", "q", "c"), trigger_input={"from": "+5511987654321"},
    ))
    assert result.results["q"].data["rowCount"] == 1
    assert result.results["c"].data["condition"] is True


@pytest.mark.asyncio
async def test_bad_sql_fails_node(executor, db_url):
    nodes = [trigger("t1"), action("q", "Database Query", databaseUrl=db_url, query="SELECT * FROM nope")]
    result = await executor.execute(WorkflowRunInput(nodes=nodes, edges=chain("t1", "q")))
    assert result.results["q"].success is False
    assert "nope" in result.results["q"].error
