#!/usr/bin/env python3
"""
MCP Tool Live Check

This script runs the notion-vault-sync MCP tools against a live Notion
workspace, validating the tool surface before release.

Features:
- Tests ping, database tools, status and a pull into a throwaway vault
- Covers happy paths and error handling
- Generates a Markdown report
- Never writes to Notion: the sync check only pulls
"""

import argparse
import asyncio
import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import mcp.types as types
import yaml
from dotenv import load_dotenv

from notion_vault_sync import __version__ as PACKAGE_VERSION
from notion_vault_sync.config import Config, load_config
from notion_vault_sync.config_loader import CONFIG_ENV_VAR
from notion_vault_sync.core.client import NotionClient
from notion_vault_sync.mcp.server import build_registry

MISSING_DATABASE_ID = "00000000000000000000000000000000"


@dataclass
class CheckResult:
    """Result of a single check"""

    tool: str
    test_name: str
    passed: bool
    response: str = ""
    notes: str = ""
    structured_content: dict | None = None


@dataclass
class CheckReport:
    """Live check report"""

    date: str = ""
    base_url: str = ""
    results: list[CheckResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return self.total - self.passed


class LiveToolChecker:
    """Runs every MCP tool once against a live workspace"""

    def __init__(
        self,
        config: Config,
        logger: logging.Logger,
        database_id: str | None = None,
        verbose: bool = False,
    ):
        self.client = NotionClient(config)
        self.registry = build_registry()
        self.logger = logger
        self.verbose = verbose
        self.database_id = database_id
        self.report = CheckReport(base_url=config.base_url)

    def _record(self, result: CheckResult) -> None:
        self.report.results.append(result)
        status = "PASS" if result.passed else "FAIL"
        print(f"  [{status}] {result.tool}.{result.test_name}")
        if self.verbose and result.notes:
            print(f"         Notes: {result.notes}")
        if not result.passed:
            print(f"         Response: {result.response[:100]}")

    async def _call_tool(
        self, tool_name: str, arguments: dict | None = None
    ) -> types.CallToolResult:
        self.logger.debug("Calling %s with %s", tool_name, arguments)
        return await self.registry.call_tool(
            tool_name, arguments or {}, self.client
        )

    @staticmethod
    def _text(result: types.CallToolResult) -> str:
        return "\n".join(
            c.text for c in result.content if isinstance(c, types.TextContent)
        )

    async def check_connectivity(self):
        print("\n=== Phase 1: Connectivity ===")
        result = await self._call_tool("ping")
        text = self._text(result)
        self._record(
            CheckResult(
                tool="ping",
                test_name="validate_token",
                passed=not result.isError,
                response=text,
                notes=text,
            )
        )

    async def check_database_tools(self):
        print("\n=== Phase 2: Database tools ===")
        result = await self._call_tool("notion_list_databases")
        databases = (result.structuredContent or {}).get("databases", [])
        self._record(
            CheckResult(
                tool="notion_list_databases",
                test_name="list",
                passed=not result.isError,
                response=self._text(result),
                notes=f"{len(databases)} databases shared",
                structured_content=result.structuredContent,
            )
        )
        if self.database_id is None and databases:
            self.database_id = databases[0]["id"]

        if self.database_id is None:
            print("  [SKIP] notion_database_schema (no database shared)")
            return
        result = await self._call_tool(
            "notion_database_schema", {"database_id": self.database_id}
        )
        properties = (result.structuredContent or {}).get("properties", [])
        self._record(
            CheckResult(
                tool="notion_database_schema",
                test_name="schema",
                passed=not result.isError
                and any(p["type"] == "title" for p in properties),
                response=self._text(result),
                notes=f"{len(properties)} properties",
                structured_content=result.structuredContent,
            )
        )

    async def check_pull(self):
        print("\n=== Phase 3: Pull into a throwaway vault ===")
        if self.database_id is None:
            print("  [SKIP] notion_sync (no database)")
            return
        with tempfile.TemporaryDirectory(prefix="notion-vault-check-") as tmp:
            config_path = Path(tmp) / "config.yml"
            config_path.write_text(
                yaml.safe_dump(
                    {
                        "sync": {
                            "vault_root": str(Path(tmp) / "vault"),
                            "state_dir": str(Path(tmp) / "state"),
                            "configs": [
                                {
                                    "id": "live-check",
                                    "name": "Live check",
                                    "folder": "Pulled",
                                    "database_id": self.database_id,
                                    "direction": "pull",
                                }
                            ],
                        }
                    }
                )
            )
            previous = os.environ.get(CONFIG_ENV_VAR)
            os.environ[CONFIG_ENV_VAR] = str(config_path)
            try:
                result = await self._call_tool(
                    "notion_sync", {"config": "live-check"}
                )
                counts = (result.structuredContent or {}).get("counts", {})
                pulled = list((Path(tmp) / "vault").rglob("*.md"))
                self._record(
                    CheckResult(
                        tool="notion_sync",
                        test_name="pull",
                        passed=not result.isError and counts.get("failed") == 0,
                        response=self._text(result),
                        notes=f"{len(pulled)} documents written",
                        structured_content=result.structuredContent,
                    )
                )

                result = await self._call_tool("notion_sync_status")
                configs = (result.structuredContent or {}).get("configs", [])
                self._record(
                    CheckResult(
                        tool="notion_sync_status",
                        test_name="after_pull",
                        passed=bool(configs) and configs[0]["last_sync"] > 0,
                        response=self._text(result),
                    )
                )
            finally:
                if previous is None:
                    os.environ.pop(CONFIG_ENV_VAR, None)
                else:
                    os.environ[CONFIG_ENV_VAR] = previous

    async def check_error_handling(self):
        print("\n=== Phase 4: Error handling ===")
        cases = [
            ("invalid_id", {"database_id": "not-an-id"}, "validation_error"),
            ("missing_database", {"database_id": MISSING_DATABASE_ID}, "not_found"),
        ]
        for name, args, expected in cases:
            result = await self._call_tool("notion_database_schema", args)
            text = self._text(result)
            self._record(
                CheckResult(
                    tool="notion_database_schema",
                    test_name=name,
                    passed=bool(result.isError) and f"Error ({expected})" in text,
                    response=text,
                )
            )

    def generate_report(self, output_path: str):
        """Write the Markdown report"""
        self.report.date = datetime.now().isoformat()
        lines = [
            "# notion-vault-sync MCP Tool Live Check",
            "",
            f"- Date: {self.report.date}",
            f"- Notion API: {self.report.base_url}",
            f"- Package version: {PACKAGE_VERSION}",
            f"- Result: {self.report.passed}/{self.report.total} passed",
            "",
            "| Tool | Check | Result | Notes |",
            "|------|-------|--------|-------|",
        ]
        for r in self.report.results:
            status = "PASS" if r.passed else "FAIL"
            notes = (r.notes or r.response[:80]).replace("\n", " ").replace("|", "/")
            lines.append(f"| {r.tool} | {r.test_name} | {status} | {notes} |")
        Path(output_path).write_text("\n".join(lines) + "\n", encoding="utf-8")
        print(f"\nReport written to {output_path}")

    async def run_all(self) -> bool:
        try:
            await self.check_connectivity()
            await self.check_database_tools()
            await self.check_pull()
            await self.check_error_handling()
        except Exception as e:
            self.logger.error("Check run failed: %s", e, exc_info=True)
            return False
        return self.report.failed == 0


def setup_logging(verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger("LiveToolChecker")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if verbose:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
        logger.addHandler(handler)
    return logger


async def async_main(args) -> int:
    logger = setup_logging(verbose=args.verbose)

    print(f"\n{'=' * 70}")
    print(f"{'MCP Tool Live Check':^70}")
    print(f"{'notion-vault-sync ' + PACKAGE_VERSION:^70}")
    print(f"{'=' * 70}")

    try:
        load_dotenv()
        config = load_config(token=args.token)
        checker = LiveToolChecker(
            config, logger, database_id=args.database, verbose=args.verbose
        )
        success = await checker.run_all()
        checker.generate_report(
            args.output
            or f"./mcp-live-check-{datetime.now().strftime('%Y-%m-%d')}.md"
        )
        print(
            f"\nTotal: {checker.report.total} | Passed: {checker.report.passed} "
            f"| Failed: {checker.report.failed}"
        )
        return 0 if success else 1
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        print(f"\n* Fatal error: {e}")
        return 1


def main():
    parser = argparse.ArgumentParser(
        description="MCP Tool Live Check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Check with NOTION_TOKEN from .env
  %(prog)s --database <id> --verbose        # Pull a specific database
  %(prog)s --output ./my-report.md          # Custom report location
        """,
    )
    parser.add_argument("--token", help="Override Notion integration token")
    parser.add_argument(
        "--database", help="Database to inspect and pull (default: first shared)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--output", "-o", help="Output report path")

    args = parser.parse_args()
    sys.exit(asyncio.run(async_main(args)))


if __name__ == "__main__":
    main()
