import pytest

from autofix.autofix_engine import AutoFixEngine
from autofix.error_detector import ErrorDetector
from autofix.streaming_generator import (
    ChunkType,
    StreamingGenerator,
    StreamingOptions,
    enhance_prompt_for_framework,
)
from conftest import FakeProvider, RecordingBus
from forgeflow.config_manager import EngineSettings
from forgeflow.error_handling import ProviderStreamError
from forgeflow.provider import TextProvider


async def collect(stream):
    return [chunk async for chunk in stream]


@pytest.mark.asyncio
async def test_function_is_emitted_once_braces_balance():
    provider = FakeProvider(stream_chunks=["function f() {\n", "  return 1;\n", "}\n"])
    generator = StreamingGenerator(provider)

    chunks = await collect(generator.generate_with_stream("write f", {"formatting": False}))

    assert [chunk.content for chunk in chunks] == ["function f() {\n  return 1;\n}"]
    assert chunks[0].type is ChunkType.CODE
    assert chunks[0].metadata == {"line_number": 1}


@pytest.mark.asyncio
async def test_clean_output_has_final_document_chunk():
    provider = FakeProvider(stream_chunks=["const a = 1;\n", "const b = 2;"])
    bus = RecordingBus()

    chunks = await collect(StreamingGenerator(provider, bus).generate_with_stream("go"))

    assert [chunk.content for chunk in chunks] == ["const a = 1;", "const b = 2;", "const a = 1;\nconst b = 2;"]
    assert chunks[1].metadata == {"line_number": 2, "phase": "final-buffer"}
    assert chunks[2].metadata == {"phase": "final", "processed": True}
    assert all(chunk.fixes is None for chunk in chunks)
    assert bus.names() == ["stream:start", "postprocess:start", "postprocess:complete", "stream:complete"]
    assert bus.events[-1] == ("stream:complete", {"chunks": 3})


@pytest.mark.asyncio
async def test_statement_issues_are_fixed_and_announced():
    provider = FakeProvider(stream_chunks=["var x = 1\n", "x = 2;\n"])
    bus = RecordingBus()

    chunks = await collect(StreamingGenerator(provider, bus).generate_with_stream("go", {"formatting": False}))

    assert chunks[0].content == "let x = 1;"
    assert chunks[0].type is ChunkType.CODE
    assert chunks[0].metadata["original"] == "var x = 1"
    assert [fix.type for fix in chunks[0].fixes] == ["var-declaration", "missing-semicolon"]
    assert chunks[1].fixes is None
    applied = [payload for name, payload in bus.events if name == "fix:applied"]
    assert applied == [{"original": "var x = 1", "fixed": "let x = 1;", "fixes": chunks[0].fixes}]


@pytest.mark.asyncio
async def test_chained_calls_stay_one_statement():
    provider = FakeProvider(stream_chunks=[
        "const names = users\n",
        "  .filter((u) => u.active)\n",
        "  .map((u) => u.name);\n",
    ])

    chunks = await collect(StreamingGenerator(provider).generate_with_stream("go", {"formatting": False}))

    assert [(chunk.content, chunk.fixes) for chunk in chunks] == [
        ("const names = users\n  .filter((u) => u.active)\n  .map((u) => u.name);", None)
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("target, method", [(ErrorDetector, "detect"), (AutoFixEngine, "fix")])
async def test_check_failure_passes_statement_through(monkeypatch, target, method):
    def broken(self, *args, **kwargs):
        raise RuntimeError("rule table exploded")

    monkeypatch.setattr(target, method, broken)
    provider = FakeProvider(stream_chunks=["var x = 1\n", "x = 2;\n"])

    chunks = await collect(StreamingGenerator(provider).generate_with_stream("go", {"formatting": False}))

    assert [(chunk.content, chunk.type, chunk.fixes) for chunk in chunks] == [
        ("var x = 1", ChunkType.CODE, None),
        ("x = 2;", ChunkType.CODE, None),
    ]


@pytest.mark.asyncio
async def test_warnings_when_auto_fix_disabled():
    provider = FakeProvider(stream_chunks=["var x = 1\n", "eval(x);\n"])

    chunks = await collect(
        StreamingGenerator(provider).generate_with_stream("go", {"auto_fix": False, "formatting": False})
    )

    assert [chunk.type for chunk in chunks] == [ChunkType.WARNING, ChunkType.WARNING]
    assert chunks[0].content == "var x = 1"
    assert [fix.type for fix in chunks[1].fixes] == ["eval-usage"]


@pytest.mark.asyncio
async def test_disabled_categories_skip_detection():
    provider = FakeProvider(stream_chunks=["var x = 1\n"])

    chunks = await collect(
        StreamingGenerator(provider).generate_with_stream(
            "go", StreamingOptions(linting=False, validation=False, formatting=False)
        )
    )

    assert [(chunk.content, chunk.fixes) for chunk in chunks] == [("var x = 1", None)]


@pytest.mark.asyncio
async def test_provider_failure_propagates_after_error_event():
    boom = RuntimeError("connection reset")
    provider = FakeProvider(stream_chunks=["const a = 1;\n", "const b = 2;\n", boom])
    bus = RecordingBus()
    received = []

    with pytest.raises(RuntimeError, match="connection reset"):
        async for chunk in StreamingGenerator(provider, bus).generate_with_stream("go"):
            received.append(chunk.content)

    assert received == ["const a = 1;"]
    assert bus.events[-1] == ("stream:error", {"error": boom})
    assert "stream:complete" not in bus.names()


@pytest.mark.asyncio
async def test_non_iterable_stream_is_rejected():
    class ListProvider(TextProvider):
        async def generate(self, prompt, options=None):
            return ""

        def stream(self, request):
            return ["not", "async"]

    with pytest.raises(ProviderStreamError):
        await collect(StreamingGenerator(ListProvider()).generate_with_stream("go"))


@pytest.mark.asyncio
async def test_stream_request_carries_prompt_and_sampling():
    provider = FakeProvider(stream_chunks=[])
    generator = StreamingGenerator(provider, temperature=0.2, max_tokens=128)

    chunks = await collect(generator.generate_with_stream("hello", {"formatting": False}))

    assert chunks == []
    request = provider.stream_requests[0]
    assert request.messages == [{"role": "user", "content": "hello"}]
    assert (request.temperature, request.max_tokens) == (0.2, 128)


@pytest.mark.asyncio
async def test_sampling_from_engine_settings():
    provider = FakeProvider(stream_chunks=[])
    settings = EngineSettings(stream_temperature=0.1, stream_max_tokens=256)

    await collect(StreamingGenerator.from_settings(provider, settings).generate_with_stream("x"))

    request = provider.stream_requests[0]
    assert (request.temperature, request.max_tokens) == (0.1, 256)


@pytest.mark.asyncio
async def test_framework_prompt_and_rules():
    provider = FakeProvider(stream_chunks=['<div class="card">\n'])

    chunks = await collect(
        StreamingGenerator(provider).generate_for_framework("a card", "react", {"formatting": False})
    )

    prompt = provider.stream_requests[0].messages[0]["content"]
    assert prompt.startswith("Generate a React component with TypeScript")
    assert prompt.endswith("\n\na card")
    assert chunks[0].content == '<div className="card">'


@pytest.mark.asyncio
async def test_unknown_framework_is_rejected():
    generator = StreamingGenerator(FakeProvider())

    with pytest.raises(ValueError, match="Unsupported framework"):
        await collect(generator.generate_for_framework("x", "ember"))
    with pytest.raises(ValueError, match="Unsupported framework"):
        enhance_prompt_for_framework("x", "")


def test_unknown_option_is_rejected():
    with pytest.raises(ValueError, match="Unknown streaming option"):
        StreamingOptions.coerce({"autofix": True})
    assert StreamingOptions.coerce(None) == StreamingOptions()


@pytest.mark.asyncio
async def test_optimized_generation_leaves_clean_code_alone():
    provider = FakeProvider(stream_chunks=["const a = 1;\n", "const b = 2;"])

    result = await StreamingGenerator(provider).generate_optimized("go")

    assert result.content == "const a = 1;\nconst b = 2;"
    assert result.fixes == []
    assert result.metadata == {"chunks": 3, "total_fixes": 0, "optimization_passes": 1}


@pytest.mark.asyncio
async def test_optimized_generation_collects_stream_fixes():
    provider = FakeProvider(stream_chunks=["var a = 1\n", "if (a == 1) {\n", "  a = 2;\n", "}\n"])

    result = await StreamingGenerator(provider).generate_optimized("go", {"formatting": False})

    assert result.content == "let a = 1;\nif (a === 1) {\n  a = 2;\n}"
    assert result.metadata["chunks"] == 2
    assert result.metadata["total_fixes"] == 3
    assert result.metadata["optimization_passes"] == 1


@pytest.mark.asyncio
async def test_optimized_generation_with_optimization_pass():
    provider = FakeProvider(stream_chunks=["const a = 1;\n", "console.log(a);\n", "export default a;\n"])

    result = await StreamingGenerator(provider).generate_optimized("go", {"optimization": True})

    assert result.content == "const a = 1;\nexport default a;"
    assert "removed-debug-statement" in [fix.type for fix in result.fixes]


@pytest.mark.asyncio
async def test_optimized_generation_keeps_blank_line_runs():
    provider = FakeProvider(stream_chunks=["const a = 1;\n", "\n", "\n", "const b = 2;"])

    result = await StreamingGenerator(provider).generate_optimized("go")

    assert result.content == "const a = 1;\n\n\nconst b = 2;"
    assert result.fixes == []
    assert result.metadata["optimization_passes"] == 1
