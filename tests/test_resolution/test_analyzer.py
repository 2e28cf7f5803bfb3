"""Tests for the requirement analyzer (spring_init.resolution.analyzer).

Covers:
- System prompt construction from the catalog
- parse_suggestions over the reply shapes models actually produce
- RequirementAnalyzer.analyze with a mocked AI client and a malformed service body
- read_prd
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from spring_init.ai_client import AIClient
from spring_init.errors import InputError, SuggestionServiceError
from spring_init.resolution import (
    RequirementAnalyzer,
    build_system_prompt,
    parse_suggestions,
    read_prd,
)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class TestSystemPrompt:
    @pytest.mark.unit
    def test_lists_every_entry_by_category(self, catalog):
        prompt = build_system_prompt(catalog)
        assert "## Web" in prompt
        assert "- web: Spring Web -- " in prompt
        assert "- data-jpa: Spring Data JPA" in prompt
        assert prompt.count("\n- ") == len(catalog)

    @pytest.mark.unit
    def test_asks_for_comma_separated_ids(self, catalog):
        assert "comma-separated list of dependency IDs" in build_system_prompt(catalog)


# ---------------------------------------------------------------------------
# Reply decoding
# ---------------------------------------------------------------------------


class TestParseSuggestions:
    @pytest.mark.unit
    def test_comma_list(self):
        assert parse_suggestions("web, data-jpa,postgresql") == ["web", "data-jpa", "postgresql"]

    @pytest.mark.unit
    def test_empty(self):
        assert parse_suggestions("") == []
        assert parse_suggestions("   \n") == []

    @pytest.mark.unit
    def test_json_array_in_code_fence(self):
        text = '```json\n["web", "security"]\n```'
        assert parse_suggestions(text) == ["web", "security"]

    @pytest.mark.unit
    def test_json_object_with_dependency_objects(self):
        text = '{"dependencies": [{"id": "web"}, {"name": "Spring Security"}, 3]}'
        assert parse_suggestions(text) == ["web", "Spring Security"]

    @pytest.mark.unit
    def test_bulleted_list_with_explanations(self):
        text = (
            "Here are the dependencies:\n"
            "- web: for the REST API\n"
            "* data-jpa - persistence layer\n"
            "3. postgresql (database driver)\n"
        )
        assert parse_suggestions(text) == ["web", "data-jpa", "postgresql"]

    @pytest.mark.unit
    def test_quotes_and_backticks_stripped(self):
        assert parse_suggestions("`web`, 'security', \"actuator\".") == [
            "web",
            "security",
            "actuator",
        ]

    @pytest.mark.unit
    def test_prose_fragments_dropped(self):
        text = "web, I think you will also want a database for this project, security"
        assert parse_suggestions(text) == ["web", "security"]

    @pytest.mark.unit
    def test_order_and_duplicates_preserved(self):
        assert parse_suggestions("security, web, security") == ["security", "web", "security"]


# ---------------------------------------------------------------------------
# RequirementAnalyzer
# ---------------------------------------------------------------------------


class TestRequirementAnalyzer:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_analyze_returns_raw_tokens(self, catalog, mock_ai):
        client = mock_ai("web, postgre-sql, data-jpa, made-up")
        tokens = await RequirementAnalyzer(client, catalog).analyze("An order service with a DB")

        assert tokens == ["web", "postgre-sql", "data-jpa", "made-up"]
        kwargs = client.complete.call_args.kwargs
        assert kwargs["prompt"] == "An order service with a DB"
        assert "- postgresql: PostgreSQL Driver" in kwargs["system"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_call(self, catalog, mock_ai):
        client = mock_ai(success=False, error="Cannot connect to the AI service")
        with pytest.raises(SuggestionServiceError, match="Cannot connect"):
            await RequirementAnalyzer(client, catalog).analyze("PRD")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_reply(self, catalog, mock_ai):
        client = mock_ai("   ")
        with pytest.raises(SuggestionServiceError, match="empty reply"):
            await RequirementAnalyzer(client, catalog).analyze("PRD")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_prd_skips_call(self, catalog, mock_ai):
        client = mock_ai("web")
        with pytest.raises(SuggestionServiceError):
            await RequirementAnalyzer(client, catalog).analyze("  \n")
        client.complete.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_reply_is_empty_not_error(self, catalog, mock_ai):
        client = mock_ai("I cannot help with that request today.")
        assert await RequirementAnalyzer(client, catalog).analyze("PRD") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_service_body(self, catalog):
        response = MagicMock()
        response.json.return_value = {"response": 42, "model": ["qwen"]}
        http = AsyncMock()
        http.post = AsyncMock(return_value=response)
        http.__aenter__ = AsyncMock(return_value=http)
        http.__aexit__ = AsyncMock(return_value=False)

        with patch("httpx.AsyncClient", return_value=http):
            with pytest.raises(SuggestionServiceError, match="usable text"):
                await RequirementAnalyzer(AIClient(), catalog).analyze("PRD")


# ---------------------------------------------------------------------------
# read_prd
# ---------------------------------------------------------------------------


class TestReadPrd:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reads_file(self, tmp_path: Path):
        path = tmp_path / "prd.md"
        path.write_text("# Orders\nNeeds a REST API.", encoding="utf-8")
        assert await read_prd(path) == "# Orders\nNeeds a REST API."

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        with pytest.raises(InputError, match="not found"):
            await read_prd(tmp_path / "missing.md")
