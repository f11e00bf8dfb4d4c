"""Tests for the HTTP API."""
import pytest

from campusbot.errors import IndexNotReadyError
from campusbot.main import EMPTY_MESSAGE_ERROR, INTERNAL_ERROR, NOT_READY_ERROR, create_app
from campusbot.rag.pipeline import AnswerPipeline
from campusbot.rag.reranker import KeywordReranker

from conftest import FakeGenerator, FakeRetriever, make_result

FALLBACK = "No information available."


def make_app(retriever=None, generator=None):
    pipeline = AnswerPipeline(
        retriever=retriever or FakeRetriever([make_result("Dr. X is the Principal of MITS.")]),
        reranker=KeywordReranker(),
        generator=generator or FakeGenerator(answer="Dr. X is the principal."),
        fallback_message=FALLBACK,
    )
    return create_app(pipeline)


async def test_health():
    response = await make_app().test_client().get("/health")

    assert response.status_code == 200
    data = await response.get_json()
    assert data["status"] == "ok"
    assert "timestamp" in data


async def test_chat_returns_answer():
    response = await make_app().test_client().post("/chat", json={"message": "Who is the principal?"})

    assert response.status_code == 200
    data = await response.get_json()
    assert data["response"] == "Dr. X is the principal."
    assert "timestamp" in data


@pytest.mark.parametrize("body", [{"message": ""}, {"message": "   "}, {}, {"message": 42}])
async def test_invalid_message_is_400_and_index_untouched(body):
    retriever = FakeRetriever()
    app = make_app(retriever=retriever)

    response = await app.test_client().post("/chat", json=body)

    assert response.status_code == 400
    assert (await response.get_json())["error"] == EMPTY_MESSAGE_ERROR
    assert retriever.calls == []


async def test_non_json_body_is_400():
    response = await make_app().test_client().post("/chat", data="hello")
    assert response.status_code == 400


async def test_no_pipeline_is_503():
    response = await create_app(None).test_client().post("/chat", json={"message": "hi"})

    assert response.status_code == 503
    assert (await response.get_json())["error"] == NOT_READY_ERROR


async def test_unloaded_index_is_503():
    app = make_app(retriever=FakeRetriever(ready=False))
    response = await app.test_client().post("/chat", json={"message": "hi"})
    assert response.status_code == 503


async def test_index_lost_mid_request_is_503():
    app = make_app(retriever=FakeRetriever(error=IndexNotReadyError("gone")))
    response = await app.test_client().post("/chat", json={"message": "hi"})
    assert response.status_code == 503


async def test_generation_failure_is_500_with_apology():
    app = make_app(generator=FakeGenerator(fail=True))

    response = await app.test_client().post("/chat", json={"message": "Who is the principal?"})

    assert response.status_code == 500
    assert (await response.get_json())["error"] == INTERNAL_ERROR


async def test_empty_retrieval_returns_fallback():
    generator = FakeGenerator()
    app = make_app(retriever=FakeRetriever([]), generator=generator)

    response = await app.test_client().post("/chat", json={"message": "Where is the moon?"})

    assert response.status_code == 200
    assert (await response.get_json())["response"] == FALLBACK
    assert generator.calls == []


async def test_requests_are_stateless():
    retriever = FakeRetriever([make_result("Dr. X is the Principal of MITS.")])
    client = make_app(retriever=retriever).test_client()

    await client.post("/chat", json={"message": "Who is the principal?"})
    await client.post("/chat", json={"message": "And the dean?"})

    assert [call["history"] for call in retriever.calls] == [(), ()]


async def test_unknown_route_is_json_404():
    response = await make_app().test_client().get("/nope")
    assert response.status_code == 404
    assert (await response.get_json())["error"] == "Not found"


async def test_cors_header_present():
    response = await make_app().test_client().get("/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers.get("Access-Control-Allow-Origin") == "*"


async def test_long_question_is_accepted():
    response = await make_app().test_client().post("/chat", json={"message": "Who is the principal? " * 100})

    assert response.status_code == 200
    assert (await response.get_json())["response"] == "Dr. X is the principal."
