import pytest

from farmguide import llm
from tests.helpers import fake_groq


def test_system_prompt_per_context():
    assert "diagnose crop problems" in llm.get_farming_system_prompt("diagnosis")
    assert "Inventory Manager" in llm.get_farming_system_prompt("inventory")
    assert "PM-KISAN" in llm.get_farming_system_prompt("general")


def test_system_prompt_rejects_unknown_context():
    with pytest.raises(ValueError):
        llm.get_farming_system_prompt("weather")


def test_no_api_key_uses_fallback(monkeypatch):
    monkeypatch.setattr(llm, "_client", None)
    reply = llm.query_farming_llm("My tomato leaf is turning yellow", "diagnosis")
    assert reply == llm.LEAF_FALLBACK


@pytest.mark.parametrize(
    "query, context, expected",
    [
        ("पत्ते पीले हो रहे हैं", "diagnosis", llm.LEAF_FALLBACK),
        ("pest on cotton", "diagnosis", llm.PEST_FALLBACK),
        ("गेहूं में कीट", "diagnosis", llm.PEST_FALLBACK),
        ("my crop looks bad", "diagnosis", llm.DIAGNOSIS_FALLBACK),
        ("50 kg urea", "inventory", llm.INVENTORY_FALLBACK),
        ("hello", "general", llm.GENERAL_FALLBACK),
    ],
)
def test_fallback_keyword_rules(query, context, expected):
    assert llm.get_fallback_farming_response(query, context) == expected


def test_every_fallback_mentions_api_key():
    for text in (llm.LEAF_FALLBACK, llm.PEST_FALLBACK, llm.DIAGNOSIS_FALLBACK,
                 llm.INVENTORY_FALLBACK, llm.GENERAL_FALLBACK):
        assert "API key" in text


def test_query_sends_prompt_history_and_sampling(monkeypatch):
    client, completions = fake_groq(content="  Use neem oil.  ")
    monkeypatch.setattr(llm, "_client", client)

    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    reply = llm.query_farming_llm("aphids on mustard", "general", chat_history=history)

    assert reply == "Use neem oil."
    call = completions.calls[0]
    assert call["model"] == llm.GROQ_MODEL
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 1024
    assert call["top_p"] == 0.95
    assert call["messages"][0] == {"role": "system", "content": llm.get_farming_system_prompt("general")}
    assert call["messages"][1:3] == history
    assert call["messages"][-1] == {"role": "user", "content": "aphids on mustard"}


def test_api_error_falls_back(monkeypatch):
    client, _ = fake_groq(error=RuntimeError("rate limited"))
    monkeypatch.setattr(llm, "_client", client)
    assert llm.query_farming_llm("pest attack", "diagnosis") == llm.PEST_FALLBACK


def test_empty_content_falls_back(monkeypatch):
    client, _ = fake_groq(content="   ")
    monkeypatch.setattr(llm, "_client", client)
    assert llm.query_farming_llm("anything", "general") == llm.GENERAL_FALLBACK
