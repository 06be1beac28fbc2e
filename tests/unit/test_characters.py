"""
Unit tests for CharacterSurvivalScanner (stage 3).

Run with: pytest tests/unit/test_characters.py -v
"""

import pytest

from refract.core.http_client import TransportError
from refract.scanners import PROBE_CHARSET, CharacterSurvivalScanner, Result, WorkItem


ITEM = WorkItem(url="http://t/page?x=1", param="x")


class TestCharacterSurvivalScanner:
    """Test suite for CharacterSurvivalScanner class"""

    def test_charset_order(self):
        """Test the probe charset is fixed"""
        assert PROBE_CHARSET == ('"', "'", "<", ">", "$", "|", "(", ")", "`", ":", ";", "{", "}")

    @pytest.mark.asyncio
    async def test_all_characters_survive(self, make_client, echo_handler):
        """Test an unescaping echo reports every character in charset order"""
        scanner = CharacterSurvivalScanner(make_client(echo_handler))

        outputs = await scanner.process(ITEM)

        assert outputs == [Result(
            url="http://t/page?x=1",
            param="x",
            unfiltered=PROBE_CHARSET,
            injection_suspected=False,
        )]

    @pytest.mark.asyncio
    async def test_escaped_characters_left_out(self, make_client, make_response, parse_query):
        """Test escaped characters are missing while order is kept"""
        def escaping(url):
            value = parse_query(url)["x"]
            value = value.replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")
            return make_response(f"value={value}")

        scanner = CharacterSurvivalScanner(make_client(escaping))

        [result] = await scanner.process(ITEM)

        assert result.unfiltered == tuple(c for c in PROBE_CHARSET if c not in '<>"')

    @pytest.mark.asyncio
    async def test_sequential_one_probe_per_character(self, make_client, echo_handler):
        """Test each character costs a baseline and a test request, in order"""
        client = make_client(echo_handler)
        scanner = CharacterSurvivalScanner(client)

        await scanner.process(ITEM)

        assert len(client.requests) == 2 * len(PROBE_CHARSET)
        assert client.requests[0::2] == [ITEM.url] * len(PROBE_CHARSET)

    @pytest.mark.asyncio
    async def test_nothing_found_drops_item(self, make_client, make_response):
        """Test no Result when nothing survives and nothing errors"""
        scanner = CharacterSurvivalScanner(make_client(lambda url: make_response("value=1")))

        assert await scanner.process(ITEM) == []

    @pytest.mark.asyncio
    async def test_injection_flag_is_sticky(self, make_client, make_response, parse_query):
        """Test one erroring character flags the whole Result"""
        def handler(url):
            value = parse_query(url)["x"]
            if value == "1'":
                return make_response("Unclosed quotation mark", status=500)
            return make_response("value=1")

        scanner = CharacterSurvivalScanner(make_client(handler))

        [result] = await scanner.process(ITEM)

        assert result.injection_suspected is True
        assert result.unfiltered == ()

    @pytest.mark.asyncio
    async def test_probe_errors_skip_character(self, make_client, echo_handler, parse_query):
        """Test a failing character probe is skipped, not fatal"""
        def flaky(url):
            if parse_query(url)["x"] == "1<":
                raise TransportError(url, 3, TimeoutError())
            return echo_handler(url)

        scanner = CharacterSurvivalScanner(make_client(flaky))

        [result] = await scanner.process(ITEM)

        assert "<" not in result.unfiltered
        assert result.unfiltered == tuple(c for c in PROBE_CHARSET if c != "<")

    def test_result_to_dict(self):
        """Test Result serializes with the output field names"""
        result = Result(url="http://t/?x=1", param="x", unfiltered=("<", ">"), injection_suspected=True)

        assert result.to_dict() == {
            "url": "http://t/?x=1",
            "param": "x",
            "unfiltered": ["<", ">"],
            "sql_injection": True,
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
