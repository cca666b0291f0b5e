import json
import logging
import sys
from unittest.mock import MagicMock

from storybook.core.logging import JsonFormatter
from storybook.services.idempotency import IdempotencyStore


class TestIdempotencyStore:
    def test_first_claim_wins(self):
        client = MagicMock()
        client.set.side_effect = [True, None]
        store = IdempotencyStore(client=client)

        assert store.check_and_set("submit:u1:k-1") is True
        assert store.check_and_set("submit:u1:k-1") is False
        client.set.assert_called_with("storybook:idempotency:submit:u1:k-1", "1", nx=True, ex=300)

    def test_explicit_ttl(self):
        client = MagicMock()
        client.set.return_value = True

        IdempotencyStore(client=client).check_and_set("k", ttl_seconds=5)

        assert client.set.call_args.kwargs["ex"] == 5


class TestJsonFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("storybook.test", logging.INFO, __file__, 1, "render_triggered", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_keeps_known_context_only(self):
        line = JsonFormatter(env="test").format(self._record(book_id="b1", page_number=-1, secret="x"))

        entry = json.loads(line)
        assert entry["message"] == "render_triggered"
        assert entry["level"] == "INFO"
        assert entry["env"] == "test"
        assert entry["book_id"] == "b1"
        assert entry["page_number"] == -1
        assert "secret" not in entry

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = self._record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in entry["exception"]
        assert "env" not in entry
