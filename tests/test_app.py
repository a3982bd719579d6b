import pytest
from fastapi.testclient import TestClient

from farmguide import app as app_module
from farmguide import inventory
from farmguide.store import AppStore
from tests.helpers import image_bytes


@pytest.fixture
def store(tmp_path, monkeypatch):
    fresh = AppStore(persist_path=str(tmp_path / "inventory.json"))
    monkeypatch.setattr(app_module, "STORE", fresh)
    return fresh


@pytest.fixture
def client(store):
    return TestClient(app_module.app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.parametrize(
    "path, context",
    [("/chat", "general"), ("/diagnose", "diagnosis"), ("/analyze", "diagnosis"), ("/inventory", "inventory")],
)
def test_pages_set_farming_context(client, store, path, context):
    store.set_farming_context("general" if context != "general" else "diagnosis")
    response = client.get(path)
    assert response.status_code == 200
    assert store.farming_context == context


def test_pages_follow_language(client, store):
    assert "फसल निदान" in client.get("/").text
    store.set_language("en")
    page = client.get("/").text
    assert "Crop diagnosis" in page
    assert 'data-speech-locale="en-US"' in page
    assert client.get("/about").status_code == 200


def test_chat_records_messages(client, store, monkeypatch):
    calls = []

    def fake_llm(message, context="diagnosis", chat_history=None):
        calls.append((message, context, chat_history, store.is_loading))
        return "**Neem oil** spray"

    monkeypatch.setattr(app_module, "query_farming_llm", fake_llm)
    store.add_message("user", "earlier question")

    response = client.post("/api/chat", json={"message": " aphids ", "context": "general"})

    assert response.status_code == 200
    assert response.json() == {
        "reply": "**Neem oil** spray",
        "html": "<p><strong>Neem oil</strong> spray</p>",
        "speech_text": "Neem oil spray",
        "context": "general",
    }
    assert calls == [("aphids", "general", [{"role": "user", "content": "earlier question"}], True)]
    assert [m.role for m in store.messages] == ["user", "user", "assistant"]
    assert store.is_loading is False


def test_chat_inventory_context_sends_no_history(client, store, monkeypatch):
    calls = []
    monkeypatch.setattr(
        app_module, "query_farming_llm",
        lambda message, context, chat_history=None: calls.append(chat_history) or "ok",
    )
    store.add_message("user", "earlier")
    store.set_farming_context("inventory")
    client.post("/api/chat", json={"message": "50 kg urea"})
    assert calls == [None]


def test_chat_validation(client):
    assert client.post("/api/chat", json={"message": "   "}).status_code == 400
    assert client.post("/api/chat", json={"message": "hi", "context": "weather"}).status_code == 400


def test_chat_without_key_uses_fallback(client, store):
    response = client.post("/api/chat", json={"message": "pest in wheat", "context": "diagnosis"})
    assert "Pest Attack" in response.json()["reply"]


def test_messages_list_and_clear(client, store):
    store.add_message("user", "hello")
    assert len(client.get("/api/messages").json()["messages"]) == 1
    client.delete("/api/messages")
    assert store.messages == []


def test_language_and_context_endpoints(client, store):
    assert client.post("/api/language", json={"language": "en"}).json() == {
        "language": "en", "speech_locale": "en-US"
    }
    assert client.post("/api/language", json={"language": "ta"}).status_code == 400
    assert client.post("/api/context", json={"context": "general"}).json() == {"context": "general"}
    assert client.post("/api/context", json={"context": "x"}).status_code == 400


def test_analyze_upload(client):
    files = {"image": ("leaf.png", image_bytes((30, 160, 40)), "image/png")}
    response = client.post("/api/analyze", files=files)

    assert response.status_code == 200
    body = response.json()
    assert "Overall risk: Low" in body["analysis"]
    assert body["image_url"].startswith("/uploads/") and body["image_url"].endswith(".png")
    assert client.get(body["image_url"]).status_code == 200


def test_analyze_rejects_non_image(client):
    files = {"image": ("notes.txt", b"hello", "text/plain")}
    response = client.post("/api/analyze", files=files)
    assert response.status_code == 400
    assert response.json()["detail"] == "कृपया इमेज फाइल चुनें"


def test_inventory_crud(client, store):
    created = client.post(
        "/api/inventory", json={"category": "seed", "name": "Wheat", "quantity": 10, "unit": "kg"}
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    listing = client.get("/api/inventory").json()
    assert [i["name"] for i in listing["grouped"]["seed"]] == ["Wheat"]
    assert listing["grouped"]["equipment"] == []

    patched = client.patch(f"/api/inventory/{item_id}", json={"quantity": 7})
    assert patched.json()["quantity"] == 7

    assert client.delete(f"/api/inventory/{item_id}").status_code == 200
    assert client.delete(f"/api/inventory/{item_id}").status_code == 404
    assert client.patch("/api/inventory/missing", json={"quantity": 1}).status_code == 404


def test_inventory_add_validation(client):
    response = client.post(
        "/api/inventory", json={"category": "toys", "name": "Ball", "quantity": 1, "unit": "pcs"}
    )
    assert response.status_code == 400


def test_inventory_page_lists_items(client, store):
    store.add_inventory_item("fertilizer", "Urea", 50, "kg")
    page = client.get("/inventory").text
    assert "Urea" in page
    assert "50 kg" in page


def test_inventory_command(client, store, monkeypatch):
    monkeypatch.setattr(
        inventory, "query_farming_llm",
        lambda *a, **k: '{"action": "add", "category": "fertilizer", "name": "Urea", "quantity": 50, "unit": "kg"}',
    )
    response = client.post("/api/inventory/command", json={"command": "मैंने 50 किलो यूरिया खरीदा"})

    body = response.json()
    assert body["applied"] is True
    assert body["item"]["name"] == "Urea"
    assert store.inventory[0].quantity == 50


def test_inventory_command_unparsed(client, store, monkeypatch):
    monkeypatch.setattr(inventory, "query_farming_llm", lambda *a, **k: "कृपया बताएं")
    response = client.post("/api/inventory/command", json={"command": "कुछ"})
    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert store.inventory == []
    assert client.post("/api/inventory/command", json={"command": ""}).status_code == 400


def test_stt_endpoint(client, monkeypatch):
    monkeypatch.setattr(
        app_module, "speech_to_text",
        lambda audio, filename: {"text": "add urea", "language": "english"},
    )
    files = {"audio": ("speech.webm", b"\x1a\x45", "audio/webm")}
    assert client.post("/api/stt", files=files).json() == {"text": "add urea", "language": "english"}


def test_stt_endpoint_upstream_failure(client, monkeypatch):
    def failing(audio, filename):
        raise app_module.SpeechToTextError("no key")

    monkeypatch.setattr(app_module, "speech_to_text", failing)
    files = {"audio": ("speech.webm", b"\x1a\x45", "audio/webm")}
    assert client.post("/api/stt", files=files).status_code == 502


def test_tts_endpoint(client, monkeypatch):
    monkeypatch.setattr(app_module, "synthesize_speech", lambda text, language: b"ID3")
    response = client.post("/api/tts", json={"text": "नमस्ते"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.content == b"ID3"


def test_tts_endpoint_empty_text(client):
    assert client.post("/api/tts", json={"text": "   "}).status_code == 400


def test_chat_llm_error_clears_loading(client, store, monkeypatch):
    seen = []

    def broken_llm(message, context="diagnosis", chat_history=None):
        seen.append(store.is_loading)
        raise RuntimeError("boom")

    monkeypatch.setattr(app_module, "query_farming_llm", broken_llm)
    response = client.post("/api/chat", json={"message": "hello"})

    assert seen == [True]
    assert response.json()["reply"] == app_module.ERROR_REPLY["hi"]
    assert store.is_loading is False


def test_analyze_ignores_client_extension(client):
    files = {"image": ("leaf.html", image_bytes((30, 160, 40)), "image/png")}
    body = client.post("/api/analyze", files=files).json()

    assert body["image_url"].endswith(".png")
    served = client.get(body["image_url"])
    assert served.headers["content-type"] == "image/png"


def test_analyze_undecodable_upload_is_stored_as_image(client):
    files = {"image": ("x.html", b"<script>alert(1)</script>", "image/svg+xml")}
    body = client.post("/api/analyze", files=files).json()

    assert body["image_url"].endswith(".jpg")
    assert client.get(body["image_url"]).headers["content-type"] == "image/jpeg"


def test_analyze_returns_rendered_analysis(client):
    files = {"image": ("leaf.png", image_bytes((30, 160, 40)), "image/png")}
    body = client.post("/api/analyze", files=files).json()
    assert "Overall risk: Low" in body["analysis_html"]
    assert body["analysis_html"].startswith("<p>")


@pytest.mark.parametrize("quantity", ["nan", "inf", -3, "lots"])
def test_inventory_add_rejects_bad_quantity(client, store, quantity):
    response = client.post(
        "/api/inventory", json={"category": "seed", "name": "Wheat", "quantity": quantity, "unit": "kg"}
    )
    assert response.status_code == 400
    assert store.inventory == []
    assert client.get("/api/inventory").status_code == 200


def test_inventory_patch_validates_fields(client, store, monkeypatch):
    item = store.add_inventory_item("fertilizer", "Urea", 50, "kg")

    assert client.patch(f"/api/inventory/{item.id}", json={"name": None}).status_code == 400
    assert client.patch(f"/api/inventory/{item.id}", json={"name": "  "}).status_code == 400
    assert client.patch(f"/api/inventory/{item.id}", json={"quantity": "nan"}).status_code == 400
    assert client.patch(f"/api/inventory/{item.id}", json={"category": "toys"}).status_code == 400

    patched = client.patch(f"/api/inventory/{item.id}", json={"unit": None})
    assert patched.status_code == 200
    assert patched.json()["unit"] == ""
    assert store.inventory[0].name == "Urea"

    monkeypatch.setattr(
        inventory, "query_farming_llm",
        lambda *a, **k: '{"action": "add", "category": "fertilizer", "name": "urea", "quantity": 5, "unit": ""}',
    )
    response = client.post("/api/inventory/command", json={"command": "add 5 urea"})
    assert response.status_code == 200
    assert store.inventory[0].quantity == 55


def test_inventory_command_non_finite_quantity(client, store, monkeypatch):
    store.add_inventory_item("seed", "Wheat", 10, "kg")
    monkeypatch.setattr(
        inventory, "query_farming_llm",
        lambda *a, **k: '{"action": "update", "name": "wheat", "quantity": Infinity}',
    )
    response = client.post("/api/inventory/command", json={"command": "wheat infinite"})
    assert response.json()["applied"] is False
    assert client.get("/api/inventory").json()["items"][0]["quantity"] == 10


def test_chat_page_renders_assistant_markdown(client, store):
    store.add_message("user", "<b>hi</b>")
    store.add_message("assistant", "**Neem oil** spray\n\n- Spray weekly\n\n<script>alert(1)</script>")
    page = client.get("/chat").text

    assert "<strong>Neem oil</strong> spray" in page
    assert "<li>Spray weekly</li>" in page
    assert "<script>alert(1)</script>" not in page
    assert "&lt;b&gt;hi&lt;/b&gt;" in page
    assert 'data-speech="Neem oil spray' in page
