# ============================================================================
#  File: streaming_generator.py
#  Version: 1.0
#  Purpose: Streams provider output as classified chunks, detecting and
#           auto-fixing issues statement by statement
#  Created: 05OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import inspect
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union

from loguru import logger

from autofix.autofix_engine import AutoFixEngine
from autofix.error_detector import ALL_CATEGORIES, LINT, VALIDATION, DetectionContext, ErrorDetector, Fix
from autofix.post_processor import PostProcessor
from autofix.segmenter import Statement, StatementSegmenter, detect_language
from forgeflow.config import (
    FRAMEWORK_INSTRUCTIONS,
    MAX_OPTIMIZATION_PASSES,
    STREAM_MAX_TOKENS,
    STREAM_TEMPERATURE,
)
from forgeflow.config_manager import EngineSettings
from forgeflow.error_handling import ProviderStreamError
from forgeflow.event_bus import EventBus
from forgeflow.provider import StreamRequest, TextProvider, chunk_text
from forgeflow.telemetry import record_telemetry
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
# Class 2.1: ChunkType
# ============================================================================
#
class ChunkType(str, Enum):
    CODE = "code"
    TEXT = "text"
    ERROR = "error"
    WARNING = "warning"
#
# ============================================================================
# Class 2.2: StreamChunk
# ============================================================================
#
@dataclass
class StreamChunk:
    content: str
    type: ChunkType = ChunkType.CODE
    fixes: Optional[List[Fix]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
#
# ============================================================================
# Class 2.3: StreamingOptions
# ============================================================================
#
@dataclass
class StreamingOptions:
    auto_fix: bool = True
    linting: bool = True
    validation: bool = True
    formatting: bool = True
    optimization: bool = False

    @classmethod
    def coerce(cls, options: Union["StreamingOptions", Mapping[str, Any], None]) -> "StreamingOptions":
        """Accept an instance, a partial mapping of overrides, or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown streaming option(s): {sorted(unknown)}")
        return cls(**dict(options))

    @property
    def categories(self) -> frozenset:
        selected = set()
        if self.linting:
            selected.add(LINT)
        if self.validation:
            selected.add(VALIDATION)
        return frozenset(selected)
#
# ============================================================================
# Class 2.4: OptimizedGeneration
# ============================================================================
#
@dataclass
class OptimizedGeneration:
    content: str
    fixes: List[Fix] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
#
# ============================================================================
# Class 2.5: _Toolkit
# ============================================================================
# Detector, fixer and post processor used by one generation call.
#
@dataclass
class _Toolkit:
    detector: ErrorDetector
    fixer: AutoFixEngine
    post_processor: PostProcessor

    @classmethod
    def for_framework(cls, framework: Optional[str]) -> "_Toolkit":
        detector = ErrorDetector(framework)
        fixer = AutoFixEngine(framework, detector)
        return cls(detector, fixer, PostProcessor(detector, fixer))
#
# ============================================================================
# SECTION 3: StreamingGenerator Class
# ============================================================================
# Class 3.1: StreamingGenerator
# ============================================================================
#
class StreamingGenerator:
    """
    Turns a provider token stream into StreamChunks. Statements are checked
    once their braces and parentheses balance and the next line does not
    continue them. Detector or fixer failures only affect the statement at
    hand, while a failing provider stream ends the generation with an
    exception.
    """

    def __init__(
        self,
        provider: TextProvider,
        event_bus: Optional[EventBus] = None,
        temperature: float = STREAM_TEMPERATURE,
        max_tokens: int = STREAM_MAX_TOKENS,
    ):
        self.provider = provider
        self.event_bus = event_bus or EventBus()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._toolkit = _Toolkit.for_framework(None)

    @classmethod
    def from_settings(
        cls, provider: TextProvider, settings: EngineSettings, event_bus: Optional[EventBus] = None
    ) -> "StreamingGenerator":
        return cls(
            provider,
            event_bus,
            temperature=settings.stream_temperature,
            max_tokens=settings.stream_max_tokens,
        )

    #
    # ========================================================================
    # Async Generator 3.1.1: generate_with_stream
    # ========================================================================
    #
    async def generate_with_stream(
        self,
        prompt: str,
        options: Union[StreamingOptions, Mapping[str, Any], None] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream ``prompt`` through the provider and yield checked chunks.

        Yields:
            StreamChunk per completed statement, one for any trailing text
            (``phase == "final-buffer"``) and, with formatting or
            optimization enabled, a whole-document chunk
            (``phase == "final"``)

        Raises:
            Exception: whatever the provider stream raised, after
                ``stream:error`` was emitted
        """
        config = StreamingOptions.coerce(options)
        async for chunk in self._stream(prompt, config, self._toolkit):
            yield chunk

    #
    # ========================================================================
    # Async Generator 3.1.2: generate_for_framework
    # ========================================================================
    #
    async def generate_for_framework(
        self,
        prompt: str,
        framework: str,
        options: Union[StreamingOptions, Mapping[str, Any], None] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Same as generate_with_stream with a framework instruction and framework rules."""
        config = StreamingOptions.coerce(options)
        enhanced_prompt = enhance_prompt_for_framework(prompt, framework)
        async for chunk in self._stream(enhanced_prompt, config, _Toolkit.for_framework(framework)):
            yield chunk

    #
    # ========================================================================
    # Async Method 3.1.3: generate_optimized
    # ========================================================================
    #
    @record_telemetry("StreamingGenerator", "generate_optimized")
    async def generate_optimized(
        self,
        prompt: str,
        options: Union[StreamingOptions, Mapping[str, Any], None] = None,
        framework: Optional[str] = None,
    ) -> OptimizedGeneration:
        """
        Drain the stream and join its statement chunks, then run up to
        MAX_OPTIMIZATION_PASSES deep detect-and-fix passes over the whole
        document. A pass that finds nothing, or changes nothing, ends the
        loop. The formatted final chunk is not used, so clean output comes
        back exactly as streamed; with ``optimization`` set, debug lines are
        removed first.
        """
        config = StreamingOptions.coerce(options)
        if framework:
            toolkit = _Toolkit.for_framework(framework)
            prompt = enhance_prompt_for_framework(prompt, framework)
        else:
            toolkit = self._toolkit

        chunks: List[StreamChunk] = []
        stream_fixes: List[Fix] = []
        statements: List[str] = []
        async for chunk in self._stream(prompt, config, toolkit):
            chunks.append(chunk)
            if chunk.metadata.get("phase") == "final":
                continue
            statements.append(chunk.content)
            if chunk.fixes:
                stream_fixes.extend(chunk.fixes)

        content = "\n".join(statements)
        optimization_fixes: List[Fix] = []
        if config.optimization:
            optimized = toolkit.post_processor.process(content, format=False, optimize=True, lint=False)
            content = optimized.content
            optimization_fixes = optimized.fixes

        content, pass_fixes, passes = self._multi_pass_optimization(content, toolkit)
        return OptimizedGeneration(
            content=content,
            fixes=stream_fixes + optimization_fixes + pass_fixes,
            metadata={
                "chunks": len(chunks),
                "total_fixes": len(stream_fixes),
                "optimization_passes": passes,
            },
        )

    #
    # ========================================================================
    # Async Generator 3.1.4: _stream
    # ========================================================================
    #
    async def _stream(
        self, prompt: str, config: StreamingOptions, toolkit: _Toolkit
    ) -> AsyncIterator[StreamChunk]:
        segmenter = StatementSegmenter()
        emitted: List[str] = []
        chunk_count = 0

        try:
            await self.event_bus.emit("stream:start", {"prompt": prompt})
            request = StreamRequest.from_prompt(
                prompt, temperature=self.temperature, max_tokens=self.max_tokens
            )
            stream = self.provider.stream(request)
            if inspect.isawaitable(stream):
                stream = await stream
            if not hasattr(stream, "__aiter__"):
                raise ProviderStreamError(f"provider.stream returned {type(stream).__name__}, not an async iterator")

            async for raw in stream:
                for statement in segmenter.feed(chunk_text(raw)):
                    chunk = await self._process_unit(statement, segmenter.seen, config, toolkit)
                    emitted.append(chunk.content)
                    chunk_count += 1
                    yield chunk

            for statement in segmenter.flush():
                chunk = await self._process_unit(
                    statement,
                    segmenter.seen,
                    config,
                    toolkit,
                    phase="final-buffer" if statement.partial else None,
                )
                emitted.append(chunk.content)
                chunk_count += 1
                yield chunk

            if config.formatting or config.optimization:
                await self.event_bus.emit("postprocess:start", {})
                chunk = self._post_process("\n".join(emitted), config, toolkit)
                chunk_count += 1
                yield chunk
                await self.event_bus.emit("postprocess:complete", {"fixes": len(chunk.fixes or [])})

            logger.info(f"[StreamingGenerator] Stream complete: {chunk_count} chunk(s)")
            await self.event_bus.emit("stream:complete", {"chunks": chunk_count})

        except Exception as e:
            logger.error(f"[StreamingGenerator] Provider stream failed: {e}")
            await self.event_bus.emit("stream:error", {"error": e})
            raise

    #
    # ========================================================================
    # Async Method 3.1.5: _process_unit
    # ========================================================================
    #
    async def _process_unit(
        self,
        statement: Statement,
        context: str,
        config: StreamingOptions,
        toolkit: _Toolkit,
        phase: Optional[str] = None,
    ) -> StreamChunk:
        metadata: Dict[str, Any] = {"line_number": statement.line}
        if phase:
            metadata["phase"] = phase

        try:
            language = detect_language(statement.text)
            issues = toolkit.detector.detect(
                statement.text,
                DetectionContext(context=context, line_number=statement.line, language=language),
                categories=config.categories,
            )
            if not issues:
                return StreamChunk(content=statement.text, type=ChunkType.CODE, metadata=metadata)

            if not config.auto_fix:
                return StreamChunk(
                    content=statement.text,
                    type=ChunkType.WARNING,
                    fixes=[issue.to_fix() for issue in issues],
                    metadata=metadata,
                )

            result = toolkit.fixer.fix(statement.text, issues)
        except Exception as e:
            logger.warning(
                f"[StreamingGenerator] Check failed for statement at line {statement.line}; passing through: {e}"
            )
            return StreamChunk(content=statement.text, type=ChunkType.CODE, metadata=metadata)

        metadata["original"] = statement.text
        if result.changed:
            await self.event_bus.emit(
                "fix:applied",
                {"original": statement.text, "fixed": result.content, "fixes": result.applied_fixes},
            )
        return StreamChunk(content=result.content, type=ChunkType.CODE, fixes=result.fixes, metadata=metadata)

    #
    # ========================================================================
    # Method 3.1.6: _post_process
    # ========================================================================
    #
    @staticmethod
    def _post_process(content: str, config: StreamingOptions, toolkit: _Toolkit) -> StreamChunk:
        metadata = {"phase": "final", "processed": True}
        try:
            processed = toolkit.post_processor.process(
                content,
                format=config.formatting,
                optimize=config.optimization,
                lint=config.linting,
            )
        except Exception as e:
            logger.warning(f"[StreamingGenerator] Post-processing failed; emitting unprocessed document: {e}")
            metadata["processed"] = False
            return StreamChunk(content=content, type=ChunkType.CODE, metadata=metadata)
        return StreamChunk(
            content=processed.content,
            type=ChunkType.CODE,
            fixes=processed.fixes or None,
            metadata=metadata,
        )

    #
    # ========================================================================
    # Method 3.1.7: _multi_pass_optimization
    # ========================================================================
    #
    @staticmethod
    def _multi_pass_optimization(content: str, toolkit: _Toolkit):
        optimized = content
        fixes: List[Fix] = []
        passes = 0

        while passes < MAX_OPTIMIZATION_PASSES:
            passes += 1
            try:
                issues = toolkit.detector.detect(
                    optimized,
                    DetectionContext(context=optimized, language=detect_language(optimized), deep=True),
                    categories=ALL_CATEGORIES,
                )
                if not issues:
                    break
                result = toolkit.fixer.fix(optimized, issues)
            except Exception as e:
                logger.warning(f"[StreamingGenerator] Optimization pass {passes} failed: {e}")
                break

            if result.content == optimized:
                break
            optimized = result.content
            fixes.extend(result.applied_fixes)

        logger.debug(f"[StreamingGenerator] Optimization finished after {passes} pass(es)")
        return optimized, fixes, passes
#
# ============================================================================
# SECTION 4: Helper Functions
# ============================================================================
# Function 4.1: enhance_prompt_for_framework
# ============================================================================
#
def enhance_prompt_for_framework(prompt: str, framework: str) -> str:
    instruction = FRAMEWORK_INSTRUCTIONS.get(framework)
    if instruction is None:
        raise ValueError(
            f"Unsupported framework '{framework}'. Expected one of {sorted(FRAMEWORK_INSTRUCTIONS)}"
        )
    return f"{instruction}\n\n{prompt}"


#
#
## END: streaming_generator.py
