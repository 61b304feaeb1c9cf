"""Tests for the Lambda entry point in contest_fanout.handlers.partition."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from contest_fanout.adapters.dynamodb import DynamoDBPageFetcher
from contest_fanout.adapters.memory import InMemoryPageFetcher, RecordingWorker
from contest_fanout.core.errors import InvalidConfigError, StoreQueryError, ValidationError
from contest_fanout.core.models import PartitionQuery
from contest_fanout.core.settings import FanoutSettings
from contest_fanout.handlers import partition
from contest_fanout.handlers.partition import build_processor, handler, parse_event

EVENT = {"contestId": "contest_123", "winningSelectionId": "selection_winner", "partitionId": "2"}


@pytest.fixture
def lambda_context():
    return SimpleNamespace(aws_request_id="req-1", function_name="partitionProcessor")


@pytest.fixture(autouse=True)
def clear_default_processor():
    partition._default_processor.cache_clear()
    yield
    partition._default_processor.cache_clear()


class TestParseEvent:
    def test_valid_event(self):
        assert parse_event(EVENT) == PartitionQuery("contest_123", "selection_winner", "2")

    def test_numeric_partition(self):
        assert parse_event({**EVENT, "partitionId": 2}).partition_id == "2"

    def test_extra_fields_ignored(self):
        assert parse_event({**EVENT, "source": "scheduler"}).contest_id == "contest_123"

    def test_missing_field(self):
        event = {k: v for k, v in EVENT.items() if k != "winningSelectionId"}
        with pytest.raises(ValidationError) as exc_info:
            parse_event(event)
        assert exc_info.value.field == "winningSelectionId"

    def test_blank_field(self):
        with pytest.raises(ValidationError):
            parse_event({**EVENT, "contestId": "   "})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            parse_event(["contest_123"])


class TestBuildProcessor:
    @pytest.mark.asyncio
    async def test_wires_aws_adapters(self, query, mock_logger):
        dynamodb = MagicMock()
        dynamodb.query.return_value = {
            "Items": [{"userId": {"S": f"u{i}"}} for i in range(45)],
        }
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = {"StatusCode": 202}

        processor = build_processor(
            FanoutSettings(worker_function_name="winnerNotifier"),
            dynamodb_client=dynamodb,
            lambda_client=lambda_client,
            log=mock_logger,
        )
        result = await processor.process(query)

        assert result.to_response()["batchesDispatched"] == 2
        assert lambda_client.invoke.call_count == 2
        assert {c.kwargs["FunctionName"] for c in lambda_client.invoke.call_args_list} == {"winnerNotifier"}
        assert dynamodb.query.call_args.kwargs["IndexName"] == "SelectionPartitionIndex"

    def test_default_fetcher_is_dynamodb(self, mock_logger):
        processor = build_processor(
            FanoutSettings(), dynamodb_client=MagicMock(), lambda_client=MagicMock(), log=mock_logger,
        )
        assert isinstance(processor._scanner._fetcher, DynamoDBPageFetcher)

    @pytest.mark.asyncio
    async def test_settings_drive_batching_and_retry(self, query, records_factory, mock_logger):
        worker = RecordingWorker(fail_times={0: 99})
        processor = build_processor(
            FanoutSettings(max_batch_size=25, max_attempts=2, base_delay_seconds=0.0),
            fetcher=InMemoryPageFetcher(records_factory(60)),
            worker=worker,
            log=mock_logger,
        )

        result = await processor.process(query)

        assert result.batches_dispatched == 3
        assert worker.attempts[0] == 2
        assert result.to_response()["failedBatches"][0]["batchNumber"] == 0


class TestHandler:
    def _processor(self, fetcher, worker, mock_logger):
        settings = FanoutSettings(base_delay_seconds=0.0)
        return build_processor(settings, fetcher=fetcher, worker=worker, log=mock_logger)

    def test_complete_response(self, records_factory, lambda_context, mock_logger):
        worker = RecordingWorker()
        processor = self._processor(InMemoryPageFetcher(records_factory(85)), worker, mock_logger)

        with patch.object(partition, "_default_processor", return_value=processor):
            response = handler(EVENT, lambda_context)

        assert response == {"overallStatus": "Complete", "batchesDispatched": 3, "failedBatches": []}
        assert sorted(len(p["batch"]) for p in worker.payloads) == [5, 40, 40]

    def test_partial_completion_response(self, records_factory, lambda_context, mock_logger):
        worker = RecordingWorker(fail_times={1: 99})
        processor = self._processor(InMemoryPageFetcher(records_factory(85)), worker, mock_logger)

        with patch.object(partition, "_default_processor", return_value=processor):
            response = handler(EVENT, lambda_context)

        assert response["overallStatus"] == "PartialCompletion"
        assert [f["batchNumber"] for f in response["failedBatches"]] == [1]

    def test_store_failure_propagates(self, records_factory, lambda_context, mock_logger):
        worker = RecordingWorker()
        fetcher = InMemoryPageFetcher(records_factory(85), page_size=20, fail_on_page=1)
        processor = self._processor(fetcher, worker, mock_logger)

        with patch.object(partition, "_default_processor", return_value=processor):
            with pytest.raises(StoreQueryError):
                handler(EVENT, lambda_context)

        assert worker.calls == []

    def test_invalid_event_raises(self, lambda_context, mock_logger):
        processor = self._processor(InMemoryPageFetcher([]), RecordingWorker(), mock_logger)

        with patch.object(partition, "_default_processor", return_value=processor):
            with pytest.raises(ValidationError):
                handler({"contestId": "contest_123"}, lambda_context)


class TestDefaultProcessor:
    def test_built_once_and_logging_configured(self, monkeypatch):
        monkeypatch.setenv("FANOUT_LOG_LEVEL", "debug")
        sentinel = object()

        with patch.object(partition, "configure_logging") as configure, \
                patch.object(partition, "build_processor", return_value=sentinel) as build:
            assert partition._default_processor() is sentinel
            assert partition._default_processor() is sentinel

        build.assert_called_once()
        configure.assert_called_once_with(level="DEBUG", json_format=True, service="partition-processor")

    def test_invalid_environment_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("FANOUT_MAX_ATTEMPTS", "0")

        with patch.object(partition, "build_processor") as build:
            with pytest.raises(InvalidConfigError) as exc_info:
                partition._default_processor()

        assert exc_info.value.key == "max_attempts"
        build.assert_not_called()
