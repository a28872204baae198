"""
Tests for the build pipeline, deferred capabilities and build configuration.
"""

import asyncio
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from tally import (
    BuildError,
    BuildOptions,
    CapabilityNotFound,
    CapabilityRegistry,
    Checkable,
    CheckId,
    UnknownKeys,
    ValidationError,
    array_schema,
    build_context,
    capabilities,
    current_options,
    format_report,
    lazy_schema,
    number_schema,
    object_schema,
    string_schema,
    union_schema,
)


@pytest.fixture
def even_capability():
    def even():
        return Checkable(
            CheckId.CUSTOM,
            lambda x: x % 2 == 0,
            lambda x: f"Expected an even number but received {x}",
        )

    capabilities.register("even", even)
    yield "even"
    capabilities.unregister("even")


@pytest.fixture
def positive_capability():
    def positive():
        return Checkable(
            CheckId.CUSTOM,
            lambda x: x > 0,
            lambda x: f"Expected a positive number but received {x}",
        )

    capabilities.register("positive", positive)
    yield "positive"
    capabilities.unregister("positive")


def address_schema():
    return object_schema({"city": string_schema().min_length(1)})


SAMPLES = [
    {"id": "user-1", "tags": ["a", "b"]},
    {"id": "u", "tags": ["a", 2]},
    {"id": 3},
    {"tags": []},
    "not an object",
]


@pytest.fixture
def profile_schema():
    return object_schema(
        {
            "id": union_schema([string_schema().min_length(2), number_schema()]),
            "tags": array_schema(string_schema()).max_length(3).optional(),
        }
    )


class TestBuildStrategies:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("sample", SAMPLES)
    async def test_async_matches_sync(self, profile_schema, sample):
        sync_report = profile_schema.build_sync().safe_parse(sample)
        async_report = (await profile_schema.build()).safe_parse(sample)
        assert sync_report == async_report

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sample", SAMPLES)
    async def test_unbuilt_path_matches_built(self, profile_schema, sample):
        built = profile_schema.build_sync().safe_parse(sample)
        assert await profile_schema.safe_parse(sample) == built

    @pytest.mark.asyncio
    async def test_unbuilt_parse(self, profile_schema):
        assert await profile_schema.parse({"id": 7}) == {"id": 7}
        with pytest.raises(ValidationError):
            await profile_schema.parse({"id": "x"})

    def test_definitions_are_reusable(self):
        city = string_schema().min_length(1)
        schema = object_schema({"from": city, "to": city}).build_sync()
        assert schema.parse({"from": "Oslo", "to": "Bergen"}) == {"from": "Oslo", "to": "Bergen"}
        assert not schema.safe_parse({"from": "Oslo", "to": ""}).success


class TestLazySchema:
    @pytest.mark.asyncio
    async def test_async_loader(self):
        async def load():
            await asyncio.sleep(0)
            return address_schema()

        schema = object_schema({"address": lazy_schema(load)})
        evaluator = await schema.build()
        assert evaluator.parse({"address": {"city": "Oslo"}}) == {"address": {"city": "Oslo"}}

    def test_async_loader_rejected_by_sync_build(self):
        async def load():
            return address_schema()

        with pytest.raises(BuildError):
            object_schema({"address": lazy_schema(load)}).build_sync()

    def test_sync_loader(self):
        schema = object_schema({"address": lazy_schema(address_schema)}).build_sync()
        report = schema.safe_parse({"address": {"city": ""}})
        assert not report.success

    def test_loader_failure(self):
        def load():
            raise RuntimeError("registry offline")

        with pytest.raises(BuildError) as exc_info:
            lazy_schema(load).build_sync()
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_loader_returning_non_schema(self):
        with pytest.raises(BuildError):
            lazy_schema(lambda: 42).build_sync()

    def test_nested_lazy(self):
        def outer():
            return object_schema({"inner": lazy_schema(address_schema)})

        schema = lazy_schema(outer).build_sync()
        assert schema.parse({"inner": {"city": "Oslo"}}) == {"inner": {"city": "Oslo"}}

    @pytest.mark.asyncio
    async def test_async_loader_failure(self):
        async def load():
            raise RuntimeError("registry offline")

        with pytest.raises(BuildError):
            await lazy_schema(load).build()

    @pytest.mark.asyncio
    async def test_all_loaders_settle_before_raising(self):
        settled = []

        async def failing():
            raise RuntimeError("boom")

        async def slow():
            await asyncio.sleep(0.01)
            settled.append("slow")
            return address_schema()

        schema = object_schema({"a": lazy_schema(failing), "b": lazy_schema(slow)})
        with pytest.raises(BuildError):
            await schema.build()
        assert settled == ["slow"]

    @pytest.mark.asyncio
    async def test_loaders_run_concurrently(self):
        first_started = asyncio.Event()
        second_started = asyncio.Event()

        async def first():
            first_started.set()
            await second_started.wait()
            return string_schema()

        async def second():
            second_started.set()
            await first_started.wait()
            return number_schema()

        schema = union_schema([lazy_schema(first), lazy_schema(second)])
        evaluator = await asyncio.wait_for(schema.build(), timeout=1)
        assert evaluator.parse(3) == 3


class TestCapabilities:
    def test_refine_with_registered_capability(self, even_capability):
        schema = number_schema().refine(even_capability).build_sync()
        assert schema.safe_parse(4).success
        report = schema.safe_parse(3)
        assert report.meta.failed_ids == {"even"}
        assert report.meta.error_messages() == ["Expected an even number but received 3"]

    def test_distinct_refinements_are_all_kept(self, even_capability, positive_capability):
        schema = (
            number_schema().refine(even_capability).refine(positive_capability).build_sync()
        )
        assert schema.safe_parse(4).meta.passed_ids == {CheckId.NUMBER, "even", "positive"}

        odd = schema.safe_parse(3)
        assert not odd.success
        assert odd.meta.failed_ids == {"even"}
        assert odd.meta.passed_ids == {CheckId.NUMBER, "positive"}

        both = schema.safe_parse(-3)
        assert both.meta.failed_ids == {"even", "positive"}
        assert both.meta.score == -1
        assert format_report(both).splitlines() == [
            "<root>: Expected an even number but received -3",
            "<root>: Expected a positive number but received -3",
        ]

    def test_repeated_refinement_last_wins(self, even_capability):
        schema = number_schema().refine(even_capability).refine(even_capability)
        report = schema.build_sync().safe_parse(4)
        assert report.meta.score == 2

    def test_missing_capability(self):
        with pytest.raises(CapabilityNotFound) as exc_info:
            number_schema().refine("no_such_check").build_sync()
        assert exc_info.value.context["name"] == "no_such_check"
        assert "min_length" in exc_info.value.context["available"]

    def test_custom_registry(self):
        registry = CapabilityRegistry("custom")
        registry.register("string", capabilities.get("string"))
        registry.register("min_length", lambda n: capabilities.get("max_length")(n))
        schema = string_schema().min_length(2).build_sync(registry=registry)
        # min_length was rebound to a max_length check in this registry
        assert schema.safe_parse("a").success
        assert not schema.safe_parse("abc").success

    def test_duplicate_registration(self):
        registry = CapabilityRegistry()
        registry.register("x", lambda: None)
        with pytest.raises(BuildError):
            registry.register("x", lambda: None)
        registry.register("x", lambda: 1, allow_overwrite=True)
        assert registry.get("x")() == 1

    def test_decorator_and_lookup(self):
        registry = CapabilityRegistry()

        @registry.capability("positive")
        def positive():
            return Checkable(CheckId.CUSTOM, lambda x: x > 0)

        assert registry.has("positive")
        assert registry.names() == ["positive"]
        assert registry.unregister("positive") is positive
        with pytest.raises(CapabilityNotFound):
            registry.unregister("positive")

    def test_wrong_capability_type(self):
        registry = CapabilityRegistry()
        registry.register("string", lambda: "not a checkable")
        with pytest.raises(BuildError):
            string_schema().build_sync(registry=registry)

    def test_async_capability_rejected_by_sync_build(self):
        registry = CapabilityRegistry()

        async def string():
            return capabilities.get("string")()

        registry.register("string", string)
        with pytest.raises(BuildError):
            string_schema().build_sync(registry=registry)

    @pytest.mark.asyncio
    async def test_async_capability(self):
        registry = CapabilityRegistry()

        async def string():
            return capabilities.get("string")()

        registry.register("string", string)
        evaluator = await string_schema().build(registry=registry)
        assert evaluator.parse("ok") == "ok"


class TestBuildOptions:
    def test_defaults(self):
        options = BuildOptions()
        assert options.unknown_keys is UnknownKeys.STRIP
        assert options.log_builds is False

    def test_rejects_unknown_fields(self):
        with pytest.raises(PydanticValidationError):
            BuildOptions(unknown_key="strict")

    def test_context_resets(self):
        with build_context(unknown_keys="strict") as options:
            assert options.unknown_keys is UnknownKeys.STRICT
            assert current_options() is options
        assert current_options().unknown_keys is UnknownKeys.STRIP

    def test_context_validates(self):
        with pytest.raises(PydanticValidationError):
            with build_context(unknown_keys="sometimes"):
                pass

    def test_log_builds(self, caplog):
        with caplog.at_level(logging.INFO, logger="tally.build"):
            string_schema().build_sync(options=BuildOptions(log_builds=True))
        assert "Built StringSchema from 1 capabilities in 1 rounds" in caplog.text

    def test_log_names_loaded_kind(self, caplog):
        with caplog.at_level(logging.INFO, logger="tally.build"):
            evaluator = lazy_schema(address_schema).build_sync(
                options=BuildOptions(log_builds=True)
            )
        assert "Built ObjectSchema from 4 capabilities in 2 rounds" in caplog.text
        assert repr(evaluator) == "EvaluableSchema(ObjectSchema)"

    def test_evaluator_repr(self):
        assert repr(string_schema().build_sync()) == "EvaluableSchema(StringSchema)"
        assert repr(string_schema().transform(str.upper).build_sync()) == (
            "EvaluableSchema(TransformedSchema)"
        )

    def test_quiet_by_default(self, caplog):
        with caplog.at_level(logging.INFO, logger="tally.build"):
            string_schema().build_sync()
        assert caplog.text == ""
