# tests/test_cli_runner.py

"""Tests for the headless refresh runner and its JSON output."""

import asyncio
import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import MagicMock, patch

from src.cli.runner import build_error, build_response, run_refresh
from src.models.tracked_product import TrackedProduct
from src.services.batch_selector import SelectionMode
from src.services.refresh_orchestrator import RefreshConfig, RefreshResult


def _product(n: int) -> TrackedProduct:
    return TrackedProduct(
        url=f"https://shop.example.com/p/{n}",
        title=f"Product {n}",
        current_price=float(n),
    )


class TestBuildResponse(unittest.TestCase):
    """Shape of the success payload."""

    def test_no_products(self) -> None:
        """An empty full run says no products were found."""
        self.assertEqual(
            build_response(RefreshResult(), SelectionMode.FULL),
            {"message": "No products found", "data": []},
        )

    def test_no_stale_products(self) -> None:
        """An empty stale run says no stale products were found."""
        self.assertEqual(
            build_response(RefreshResult(), SelectionMode.STALE),
            {"message": "No stale products found", "data": []},
        )

    def test_partial_run(self) -> None:
        """Processed and total counts are reported separately."""
        result = RefreshResult(
            total=3,
            processed=[_product(1), _product(3)],
            failed=["https://shop.example.com/p/2"],
        )
        payload = build_response(result, SelectionMode.FULL)
        self.assertEqual(payload["message"], "Products updated successfully")
        self.assertEqual(payload["processed"], 2)
        self.assertEqual(payload["total"], 3)
        data = payload["data"]
        assert isinstance(data, list)
        self.assertEqual(
            [d["url"] for d in data],
            ["https://shop.example.com/p/1", "https://shop.example.com/p/3"],
        )

    def test_payload_is_json_serialisable(self) -> None:
        """The payload round-trips through json."""
        result = RefreshResult(total=1, processed=[_product(1)])
        json.dumps(build_response(result, SelectionMode.FULL))


class TestBuildError(unittest.TestCase):
    """Shape of the failure payload."""

    def test_generic_error(self) -> None:
        """The exception text is included."""
        self.assertEqual(
            build_error(RuntimeError("db locked")),
            {"message": "Error in refresh run: db locked", "error": True},
        )

    def test_timeout(self) -> None:
        """A blown time budget has its own message."""
        payload = build_error(asyncio.TimeoutError())
        self.assertEqual(
            payload["message"], "Error in refresh run: time budget exceeded"
        )
        self.assertTrue(payload["error"])


class TestRunRefresh(unittest.IsolatedAsyncioTestCase):
    """run_refresh exit codes and output."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmp_dir.name) / "cli.db"

    def tearDown(self) -> None:
        self.tmp_dir.cleanup()

    async def _run(
        self, config: RefreshConfig | None = None,
    ) -> tuple[int, dict[str, object]]:
        out = io.StringIO()
        with redirect_stdout(out):
            code = await run_refresh(
                SelectionMode.FULL,
                cap=None,
                db_path=self.db_path,
                config=config or RefreshConfig(),
            )
        return code, json.loads(out.getvalue())

    async def test_empty_store_succeeds(self) -> None:
        """A run over an empty store exits 0 with a no-products message."""
        code, payload = await self._run()
        self.assertEqual(code, 0)
        self.assertEqual(payload["message"], "No products found")

    @patch("src.cli.runner.RefreshOrchestrator")
    async def test_run_failure_exits_nonzero(
        self, mock_orch_cls: MagicMock,
    ) -> None:
        """An error escaping the orchestrator becomes an error payload."""

        async def boom(*_: object) -> RefreshResult:
            raise RuntimeError("db locked")

        mock_orch_cls.return_value.refresh = boom

        code, payload = await self._run()

        self.assertEqual(code, 1)
        self.assertEqual(
            payload, {"message": "Error in refresh run: db locked",
                      "error": True}
        )

    @patch("src.cli.runner.RefreshOrchestrator")
    async def test_time_budget_enforced(
        self, mock_orch_cls: MagicMock,
    ) -> None:
        """A run that outlives its budget is cancelled and reported."""

        async def slow(*_: object) -> RefreshResult:
            await asyncio.sleep(5)
            return RefreshResult()

        mock_orch_cls.return_value.refresh = slow

        code, payload = await self._run(
            RefreshConfig(run_time_budget=0.05)
        )

        self.assertEqual(code, 1)
        self.assertEqual(
            payload["message"], "Error in refresh run: time budget exceeded"
        )

    @patch("src.cli.runner.RefreshOrchestrator")
    async def test_success_payload(self, mock_orch_cls: MagicMock) -> None:
        """Refreshed records are listed in the payload."""

        async def ok(*_: object) -> RefreshResult:
            return RefreshResult(total=2, processed=[_product(1)])

        mock_orch_cls.return_value.refresh = ok

        code, payload = await self._run()

        self.assertEqual(code, 0)
        self.assertEqual(payload["processed"], 1)
        self.assertEqual(payload["total"], 2)


if __name__ == "__main__":
    unittest.main()
