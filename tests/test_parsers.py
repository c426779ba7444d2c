"""Tests for provider response parsers."""

import json

import pytest

from bedrock_gateway.exceptions import ErrorCode, RequestError, ResponseError
from bedrock_gateway.providers.parsers import (
    parse_embedding_response,
    parse_image_response,
    parse_stream_chunk,
    parse_text_response,
)
from bedrock_gateway.providers.profiles import resolve


def _body(data: object) -> bytes:
    return json.dumps(data).encode()


class TestTextParsers:
    """Tests for complete text responses."""

    def test_titan(self) -> None:
        """Titan text and token counts are read from results[0]."""
        body = _body(
            {
                "inputTextTokenCount": 5,
                "results": [
                    {"outputText": "Hi there", "tokenCount": 3, "completionReason": "FINISH"}
                ],
            }
        )
        response = parse_text_response(body, resolve("amazon.titan-text-express-v1"))
        assert response.text == "Hi there"
        assert response.prompt_tokens == 5
        assert response.completion_tokens == 3
        assert response.total_tokens == 8
        assert response.finish_reason == "FINISH"

    def test_anthropic_joins_text_blocks(self) -> None:
        """Anthropic text blocks are concatenated in order."""
        body = _body(
            {
                "content": [
                    {"type": "text", "text": "Hello, "},
                    {"type": "tool_use", "id": "x"},
                    {"type": "text", "text": "world"},
                ],
                "usage": {"input_tokens": 10, "output_tokens": 2},
                "stop_reason": "end_turn",
            }
        )
        response = parse_text_response(body, resolve("anthropic.claude-3-haiku-20240307-v1:0"))
        assert response.text == "Hello, world"
        assert response.prompt_tokens == 10
        assert response.finish_reason == "end_turn"

    def test_llama(self) -> None:
        """Llama generation and counts are read."""
        body = _body(
            {
                "generation": "Paris",
                "prompt_token_count": 7,
                "generation_token_count": 1,
                "stop_reason": "stop",
            }
        )
        response = parse_text_response(body, resolve("meta.llama3-8b-instruct-v1:0"))
        assert response.text == "Paris"
        assert response.completion_tokens == 1

    def test_mistral(self) -> None:
        """Mistral reads outputs[0]."""
        body = _body({"outputs": [{"text": "Bonjour", "stop_reason": "stop"}]})
        response = parse_text_response(body, resolve("mistral.mistral-7b-instruct-v0:2"))
        assert response.text == "Bonjour"
        assert response.finish_reason == "stop"

    def test_jamba(self) -> None:
        """Jamba reads the chat choice."""
        body = _body(
            {
                "choices": [{"message": {"content": "Hi"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 4, "completion_tokens": 1},
            }
        )
        response = parse_text_response(body, resolve("ai21.jamba-instruct-v1:0"))
        assert response.text == "Hi"
        assert response.prompt_tokens == 4

    def test_jurassic(self) -> None:
        """Jurassic-2 reads completions[0].data.text."""
        body = _body(
            {
                "prompt": {"tokens": [{}, {}]},
                "completions": [
                    {"data": {"text": "Hi", "tokens": [{}]}, "finishReason": {"reason": "endoftext"}}
                ],
            }
        )
        response = parse_text_response(body, resolve("ai21.j2-ultra-v1"))
        assert response.text == "Hi"
        assert response.prompt_tokens == 2
        assert response.completion_tokens == 1
        assert response.finish_reason == "endoftext"

    def test_cohere_command_r(self) -> None:
        """Command R reads the top-level text."""
        body = _body({"text": "Hola", "finish_reason": "COMPLETE"})
        response = parse_text_response(body, resolve("cohere.command-r-v1:0"))
        assert response.text == "Hola"

    def test_cohere_classic(self) -> None:
        """Classic Command reads generations[0]."""
        body = _body({"generations": [{"text": "Hola", "finish_reason": "COMPLETE"}]})
        response = parse_text_response(body, resolve("cohere.command-text-v14"))
        assert response.text == "Hola"
        assert response.finish_reason == "COMPLETE"

    def test_missing_field(self) -> None:
        """A missing text field is a MALFORMED_RESPONSE."""
        with pytest.raises(ResponseError) as exc_info:
            parse_text_response(_body({"results": []}), resolve("amazon.titan-text-express-v1"))
        assert exc_info.value.code == ErrorCode.MALFORMED_RESPONSE
        assert exc_info.value.details["field"] == ["results", 0]

    def test_wrong_field_type(self) -> None:
        """A field of the wrong type is a MALFORMED_RESPONSE."""
        with pytest.raises(ResponseError):
            parse_text_response(_body({"generation": 42}), resolve("meta.llama3-8b-instruct-v1:0"))

    def test_invalid_json(self) -> None:
        """Bodies that are not JSON are rejected."""
        with pytest.raises(ResponseError):
            parse_text_response(b"<html>oops", resolve("meta.llama3-8b-instruct-v1:0"))

    def test_non_object_json(self) -> None:
        """Top-level JSON must be an object."""
        with pytest.raises(ResponseError):
            parse_text_response(b"[1, 2]", resolve("meta.llama3-8b-instruct-v1:0"))


class TestChunkParsers:
    """Tests for stream frame parsing."""

    def test_titan_chunk(self) -> None:
        """Titan chunks end when completionReason is set."""
        profile = resolve("amazon.titan-text-express-v1", stream=True)
        first = parse_stream_chunk(_body({"outputText": "Hel", "completionReason": None}), profile)
        last = parse_stream_chunk(_body({"outputText": "lo", "completionReason": "FINISH"}), profile)
        assert (first.chunk, first.done) == ("Hel", False)
        assert (last.chunk, last.done, last.finish_reason) == ("lo", True, "FINISH")

    def test_anthropic_events(self) -> None:
        """Anthropic delta, stop and bookkeeping events are handled."""
        profile = resolve("anthropic.claude-3-haiku-20240307-v1:0", stream=True)
        delta = parse_stream_chunk(
            _body({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}),
            profile,
        )
        reason = parse_stream_chunk(
            _body({"type": "message_delta", "delta": {"stop_reason": "end_turn"}}),
            profile,
        )
        stop = parse_stream_chunk(_body({"type": "message_stop"}), profile)
        ping = parse_stream_chunk(_body({"type": "ping"}), profile)

        assert delta.chunk == "Hi"
        assert reason.finish_reason == "end_turn"
        assert not reason.done
        assert stop.done
        assert ping.chunk == ""
        assert not ping.done

    def test_anthropic_error_event(self) -> None:
        """An in-stream error event raises."""
        profile = resolve("anthropic.claude-3-haiku-20240307-v1:0", stream=True)
        with pytest.raises(ResponseError):
            parse_stream_chunk(
                _body({"type": "error", "error": {"message": "overloaded"}}),
                profile,
            )

    def test_llama_chunk(self) -> None:
        """Llama chunks end when stop_reason is set."""
        profile = resolve("meta.llama3-8b-instruct-v1:0", stream=True)
        chunk = parse_stream_chunk(_body({"generation": "!", "stop_reason": "stop"}), profile)
        assert chunk.chunk == "!"
        assert chunk.done

    def test_mistral_chunk(self) -> None:
        """Mistral chunks read outputs[0]."""
        profile = resolve("mistral.mistral-7b-instruct-v0:2", stream=True)
        chunk = parse_stream_chunk(_body({"outputs": [{"text": "a", "stop_reason": None}]}), profile)
        assert chunk.chunk == "a"
        assert not chunk.done

    def test_ai21_chunk(self) -> None:
        """AI21 chunks read the choice delta."""
        profile = resolve("ai21.jamba-instruct-v1:0", stream=True)
        chunk = parse_stream_chunk(
            _body({"choices": [{"delta": {"content": "x"}, "finish_reason": None}]}),
            profile,
        )
        assert chunk.chunk == "x"

    def test_cohere_events(self) -> None:
        """Cohere text-generation and stream-end events are handled."""
        profile = resolve("cohere.command-r-v1:0", stream=True)
        text = parse_stream_chunk(_body({"event_type": "text-generation", "text": "t"}), profile)
        end = parse_stream_chunk(
            _body({"event_type": "stream-end", "finish_reason": "COMPLETE"}),
            profile,
        )
        assert text.chunk == "t"
        assert end.done
        assert end.finish_reason == "COMPLETE"

    def test_cohere_classic_chunk(self) -> None:
        """Classic Cohere chunks use is_finished."""
        profile = resolve("cohere.command-text-v14", stream=True)
        chunk = parse_stream_chunk(
            _body({"text": "", "is_finished": True, "finish_reason": "COMPLETE"}),
            profile,
        )
        assert chunk.done

    def test_stability_cannot_stream(self) -> None:
        """Stability has no stream frames."""
        with pytest.raises(RequestError):
            parse_stream_chunk(_body({}), resolve("stability.stable-diffusion-xl-v1"))


class TestEmbeddingParsers:
    """Tests for embedding responses."""

    def test_titan(self) -> None:
        """Titan embedding is read with its token count."""
        body = _body({"embedding": [0.1, 0.2, 3], "inputTextTokenCount": 2})
        response = parse_embedding_response(body, resolve("amazon.titan-embed-text-v1"))
        assert response.embedding == [0.1, 0.2, 3.0]
        assert response.dimensions == 3
        assert response.input_tokens == 2

    def test_cohere_list(self) -> None:
        """Cohere returns a list of vectors."""
        body = _body({"embeddings": [[0.5, 0.5]]})
        response = parse_embedding_response(body, resolve("cohere.embed-english-v3"))
        assert response.embedding == [0.5, 0.5]

    def test_cohere_typed(self) -> None:
        """Cohere typed responses key vectors under float."""
        body = _body({"embeddings": {"float": [[1.0, 0.0]]}})
        response = parse_embedding_response(body, resolve("cohere.embed-english-v3"))
        assert response.embedding == [1.0, 0.0]

    @pytest.mark.parametrize("vector", [[], ["a", "b"], [True, False], None])
    def test_invalid_vector(self, vector: object) -> None:
        """Empty or non-numeric vectors are rejected."""
        with pytest.raises(ResponseError):
            parse_embedding_response(
                _body({"embedding": vector}),
                resolve("amazon.titan-embed-text-v1"),
            )


class TestImageParsers:
    """Tests for image responses."""

    def test_titan(self) -> None:
        """Titan images are returned in order."""
        body = _body({"images": ["aaa", "bbb"]})
        response = parse_image_response(body, resolve("amazon.titan-image-generator-v1"))
        assert response.images == ["aaa", "bbb"]
        assert response.image_data == "aaa"

    def test_titan_error(self) -> None:
        """A Titan error field raises."""
        with pytest.raises(ResponseError):
            parse_image_response(
                _body({"images": [], "error": "content filtered"}),
                resolve("amazon.titan-image-generator-v1"),
            )

    def test_stability(self) -> None:
        """Stability artifacts are read."""
        body = _body({"result": "success", "artifacts": [{"base64": "ccc"}]})
        response = parse_image_response(body, resolve("stability.stable-diffusion-xl-v1"))
        assert response.images == ["ccc"]

    def test_stability_failure(self) -> None:
        """A non-success Stability result raises."""
        with pytest.raises(ResponseError):
            parse_image_response(
                _body({"result": "error", "artifacts": []}),
                resolve("stability.stable-diffusion-xl-v1"),
            )
