"""
Unit tests for ReflectionScanner (stage 1).

Run with: pytest tests/unit/test_reflection.py -v
"""

import pytest

from refract.core.http_client import ParseError, TransportError
from refract.scanners import ReflectionScanner, WorkItem


class TestReflectionScanner:
    """Test suite for ReflectionScanner class"""

    @pytest.mark.asyncio
    async def test_reports_reflected_parameters(self, make_client, echo_handler):
        """Test parameters echoed in the body are reported in query order"""
        scanner = ReflectionScanner(make_client(echo_handler))

        params = await scanner.detect_reflected("http://t/page?b=hello&a=world")

        assert params == ["b", "a"]

    @pytest.mark.asyncio
    async def test_unreflected_parameter_ignored(self, make_client, make_response):
        """Test values missing from the body are not reported"""
        client = make_client(lambda url: make_response("<html>hello</html>"))
        scanner = ReflectionScanner(client)

        params = await scanner.detect_reflected("http://t/page?a=hello&b=absent")

        assert params == ["a"]

    @pytest.mark.asyncio
    async def test_no_query_parameters(self, make_client, echo_handler):
        """Test URL without query string reports nothing"""
        scanner = ReflectionScanner(make_client(echo_handler))

        assert await scanner.detect_reflected("http://t/page") == []

    @pytest.mark.asyncio
    async def test_empty_values_never_reported(self, make_client, make_response):
        """Test parameters with empty values are excluded"""
        client = make_client(lambda url: make_response("<html>anything x</html>"))
        scanner = ReflectionScanner(client)

        params = await scanner.detect_reflected("http://t/page?a=&b=x&c")

        assert params == ["b"]

    @pytest.mark.asyncio
    async def test_repeated_parameter_reported_once(self, make_client, make_response):
        """Test a key with several reflected values appears once"""
        client = make_client(lambda url: make_response("<html>one two</html>"))
        scanner = ReflectionScanner(client)

        params = await scanner.detect_reflected("http://t/page?a=one&a=two")

        assert params == ["a"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [300, 301, 302, 303, 307, 308])
    async def test_redirect_reports_nothing(self, make_client, make_response, status):
        """Test 3xx responses short-circuit regardless of body"""
        client = make_client(lambda url: make_response("<html>hello</html>", status=status))
        scanner = ReflectionScanner(client)

        assert await scanner.detect_reflected("http://t/page?a=hello") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", ["application/json", "text/plain", "image/png"])
    async def test_non_html_reports_nothing(self, make_client, make_response, content_type):
        """Test non-HTML Content-Type short-circuits"""
        client = make_client(lambda url: make_response('{"a": "hello"}', content_type=content_type))
        scanner = ReflectionScanner(client)

        assert await scanner.detect_reflected("http://t/page?a=hello") == []

    @pytest.mark.asyncio
    async def test_missing_content_type_accepted(self, make_client, make_response):
        """Test absent Content-Type is treated as HTML"""
        client = make_client(lambda url: make_response("hello", content_type=None))
        scanner = ReflectionScanner(client)

        assert await scanner.detect_reflected("http://t/page?a=hello") == ["a"]

    @pytest.mark.asyncio
    async def test_xhtml_content_type_accepted(self, make_client, make_response):
        """Test any Content-Type containing html is accepted"""
        client = make_client(lambda url: make_response("hello", content_type="application/xhtml+xml"))
        scanner = ReflectionScanner(client)

        assert await scanner.detect_reflected("http://t/page?a=hello") == ["a"]

    @pytest.mark.asyncio
    async def test_malformed_url_raises_before_request(self, make_client, echo_handler):
        """Test malformed URL raises ParseError without any request"""
        client = make_client(echo_handler)
        scanner = ReflectionScanner(client)

        with pytest.raises(ParseError):
            await scanner.detect_reflected("::not a url::")

        assert client.requests == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, make_client):
        """Test transport failures reach the caller"""
        def failing(url):
            raise TransportError(url, 3, ConnectionError("refused"))

        scanner = ReflectionScanner(make_client(failing))

        with pytest.raises(TransportError):
            await scanner.detect_reflected("http://t/page?a=1")

    @pytest.mark.asyncio
    async def test_process_fans_out_work_items(self, make_client, echo_handler):
        """Test process() emits one WorkItem per reflected parameter"""
        scanner = ReflectionScanner(make_client(echo_handler))

        outputs = await scanner.process(WorkItem(url="http://t/page?a=1&b=2"))

        assert outputs == [
            WorkItem(url="http://t/page?a=1&b=2", param="a"),
            WorkItem(url="http://t/page?a=1&b=2", param="b"),
        ]
        assert scanner.get_statistics()["scanned"] == 1
        assert scanner.get_statistics()["hits"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
