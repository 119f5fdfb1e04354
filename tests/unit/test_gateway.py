"""
Unit tests for the language model gateway.

External HTTP is replaced with ``httpx.MockTransport``.
"""

import json
import uuid

import httpx
import pytest

from app.domains.ai.gateway import (
    ELLIPSIS,
    MAX_PROMPT_BLOG_POSTS,
    MAX_PROMPT_PRODUCTS,
    LanguageModelGateway,
    truncate,
)
from app.exceptions.ai import GenerationFailedError
from app.schemas.store import (
    BlogPostContext,
    CollectionContext,
    PageContext,
    ProductContext,
    StoreContextSnapshot,
)


def completion(content="Try the Sonic Buds (sonic-buds).", total_tokens=120):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 100, "completion_tokens": 20, "total_tokens": total_tokens},
    }


def make_gateway(handler, **kwargs) -> LanguageModelGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    options = {
        "api_key": "test-key",
        "base_url": "https://api.z.ai/api/paas/v4",
        "model": "glm-4.5-flash",
        "max_tokens": 4000,
        "temperature": 0.7,
        "timeout": 5,
        "history_limit": 10,
    }
    options.update(kwargs)
    return LanguageModelGateway(client=client, **options)


def product(i: int, description: str = "Comfortable everyday item") -> ProductContext:
    return ProductContext(
        id=uuid.uuid4(),
        title=f"Product {i}",
        handle=f"product-{i}",
        price="19.99",
        description=description,
        product_type="Apparel",
        vendor="Acme",
    )


@pytest.fixture
def snapshot():
    return StoreContextSnapshot(
        products=[product(1, description="x" * 500)],
        collections=[
            CollectionContext(id=uuid.uuid4(), title="Summer", handle="summer", products_count=4, description="y" * 300)
        ],
        pages=[PageContext(id=uuid.uuid4(), title="Refund Policy", handle="refund-policy", content="30 days")],
        blog_posts=[BlogPostContext(id=uuid.uuid4(), title="News", handle="news", excerpt="Short", content="Long")],
    )


class TestTruncate:
    """Test cases for truncate."""

    def test_short_text_unchanged(self):
        """Test text within the limit is returned as is."""
        assert truncate("hello", 10) == "hello"

    def test_long_text_cut_with_ellipsis(self):
        """Test cut text ends with the ellipsis marker."""
        result = truncate("a" * 250, 200)
        assert result == "a" * 200 + ELLIPSIS

    def test_none(self):
        """Test missing text becomes empty."""
        assert truncate(None, 10) == ""


class TestSystemPrompt:
    """Test cases for prompt construction."""

    def test_scoped_to_store_with_truncated_bodies(self, snapshot):
        """Test the prompt scopes the assistant and truncates bodies."""
        gateway = make_gateway(lambda request: httpx.Response(200, json=completion()))
        prompt = gateway.build_system_prompt(snapshot)

        assert "ONLY provide information about THIS STORE" in prompt
        assert "Product 1 (product-1): $19.99" in prompt
        assert "x" * 200 + ELLIPSIS in prompt
        assert "x" * 201 not in prompt
        assert "y" * 150 + ELLIPSIS in prompt
        assert "Summer (summer): 4 products" in prompt
        assert "Refund Policy (refund-policy): 30 days" in prompt
        # Excerpt preferred over content
        assert "News (news): Short" in prompt
        assert "handles or IDs" in prompt

    def test_product_and_post_caps(self):
        """Test that only the capped number of products and posts are listed."""
        snapshot = StoreContextSnapshot(
            products=[product(i) for i in range(25)],
            blog_posts=[
                BlogPostContext(id=uuid.uuid4(), title=f"Post {i}", handle=f"post-{i}", content="c")
                for i in range(12)
            ],
        )
        gateway = make_gateway(lambda request: httpx.Response(200, json=completion()))
        prompt = gateway.build_system_prompt(snapshot)

        assert "PRODUCTS (25 items):" in prompt
        assert f"(product-{MAX_PROMPT_PRODUCTS - 1})" in prompt
        assert f"(product-{MAX_PROMPT_PRODUCTS})" not in prompt
        assert "... and 5 more products available" in prompt
        assert f"(post-{MAX_PROMPT_BLOG_POSTS - 1})" in prompt
        assert f"(post-{MAX_PROMPT_BLOG_POSTS})" not in prompt

    def test_price_not_set(self):
        """Test products without a price are labelled."""
        snapshot = StoreContextSnapshot(
            products=[ProductContext(id=uuid.uuid4(), title="Gift", handle="gift")]
        )
        gateway = make_gateway(lambda request: httpx.Response(200, json=completion()))
        assert "Gift (gift): Price not set" in gateway.build_system_prompt(snapshot)


class TestGenerate:
    """Test cases for generate."""

    async def test_success(self, snapshot):
        """Test request shape and parsed result."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion(total_tokens=120))

        gateway = make_gateway(handler)
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        result = await gateway.generate("Any headphones?", snapshot, history)

        assert result.text == "Try the Sonic Buds (sonic-buds)."
        assert result.tokens_used == 120
        assert result.response_time_ms >= 0
        assert result.model == "glm-4.5-flash"

        assert captured["url"] == "https://api.z.ai/api/paas/v4/chat/completions"
        assert captured["auth"] == "Bearer test-key"
        body = captured["body"]
        assert body["model"] == "glm-4.5-flash"
        assert body["max_tokens"] == 4000
        assert body["temperature"] == 0.7
        assert body["stream"] is False
        roles = [m["role"] for m in body["messages"]]
        assert roles == ["system", "user", "assistant", "user"]
        assert body["messages"][-1]["content"] == "Any headphones?"

    async def test_history_capped_to_most_recent(self, snapshot):
        """Test that the oldest history is dropped beyond the limit."""
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion())

        gateway = make_gateway(handler, history_limit=3)
        history = [{"role": "user", "content": f"m{i}"} for i in range(8)]
        await gateway.generate("now", snapshot, history)

        contents = [m["content"] for m in captured["body"]["messages"][1:]]
        assert contents == ["m5", "m6", "m7", "now"]

    async def test_zero_history_limit(self, snapshot):
        """Test an explicit limit of zero sends only the system and user turns."""
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion())

        gateway = make_gateway(handler, history_limit=0)
        await gateway.generate("now", snapshot, [{"role": "user", "content": "earlier"}])

        assert gateway.history_limit == 0
        assert [m["role"] for m in captured["body"]["messages"]] == ["system", "user"]
        assert captured["body"]["messages"][-1]["content"] == "now"

    @pytest.mark.parametrize("status_code", [400, 401, 429, 500, 503])
    async def test_http_error_status(self, snapshot, status_code):
        """Test non-success statuses map to GenerationFailedError."""
        gateway = make_gateway(lambda request: httpx.Response(status_code, json={"error": "nope"}))
        with pytest.raises(GenerationFailedError) as exc_info:
            await gateway.generate("hi", snapshot, [])
        assert exc_info.value.details["status"] == status_code

    async def test_network_error(self, snapshot):
        """Test transport failures map to GenerationFailedError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(GenerationFailedError):
            await gateway.generate("hi", snapshot, [])

    @pytest.mark.parametrize(
        "body",
        [
            {"choices": []},
            {"unexpected": True},
            {"choices": [{"message": {"content": ""}}]},
            {"choices": [{"message": {"content": None}}]},
        ],
    )
    async def test_malformed_body(self, snapshot, body):
        """Test malformed bodies map to GenerationFailedError."""
        gateway = make_gateway(lambda request: httpx.Response(200, json=body))
        with pytest.raises(GenerationFailedError):
            await gateway.generate("hi", snapshot, [])

    async def test_invalid_json(self, snapshot):
        """Test a non-JSON body maps to GenerationFailedError."""
        gateway = make_gateway(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(GenerationFailedError):
            await gateway.generate("hi", snapshot, [])

    async def test_missing_usage_counts_zero_tokens(self, snapshot):
        """Test a reply without usage counters still succeeds."""
        gateway = make_gateway(
            lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})
        )
        result = await gateway.generate("hi", snapshot, [])
        assert result.tokens_used == 0

    async def test_not_configured(self, snapshot):
        """Test a missing API key fails without any request."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=completion())

        gateway = make_gateway(handler, api_key="")
        assert gateway.is_configured is False
        with pytest.raises(GenerationFailedError):
            await gateway.generate("hi", snapshot, [])
        assert calls == []
