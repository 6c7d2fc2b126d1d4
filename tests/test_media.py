"""Tests for media types, entities and hypermedia links."""

import pytest
from pydantic import ValidationError

from conduit.errors import InvalidArgumentError
from conduit.link import Link
from conduit.media import Entity, MediaType, charset_of, is_json, parse_media_type


class TestMediaTypes:
    """Tests for media type parsing helpers."""

    def test_parse_with_parameters(self) -> None:
        """Test that essence is lower-cased and quoted parameters unquoted."""
        essence, params = parse_media_type('Text/HTML; Charset="UTF-8"; level=1')
        assert essence == "text/html"
        assert params == {"charset": "UTF-8", "level": "1"}

    @pytest.mark.parametrize("value", ["text", "/plain", "text/", ""])
    def test_parse_rejects_malformed(self, value: str) -> None:
        """Test that values without type/subtype are rejected."""
        with pytest.raises(InvalidArgumentError):
            parse_media_type(value)

    def test_charset_of(self) -> None:
        """Test charset extraction with defaults."""
        assert charset_of("text/plain; charset=ISO-8859-1") == "ISO-8859-1"
        assert charset_of("text/plain") == "utf-8"
        assert charset_of(None, default="ascii") == "ascii"
        assert charset_of("garbage") == "utf-8"

    def test_is_json(self) -> None:
        """Test JSON media type detection, including +json suffixes."""
        assert is_json("application/json; charset=utf-8")
        assert is_json("application/problem+json")
        assert not is_json("text/plain")
        assert not is_json(None)


class TestEntity:
    """Tests for Entity factories."""

    def test_factories(self) -> None:
        """Test the media type chosen by each factory."""
        assert Entity.text("a").media_type == MediaType.TEXT_PLAIN
        assert Entity.xml("<a/>").media_type == MediaType.APPLICATION_XML
        assert Entity.json({}).media_type == MediaType.APPLICATION_JSON
        assert Entity.html("<p/>").media_type == MediaType.TEXT_HTML
        assert Entity.form({"a": "b"}).media_type == MediaType.APPLICATION_FORM_URLENCODED

    def test_explicit_media_type_and_language(self) -> None:
        """Test Entity.entity with a language."""
        entity = Entity.entity("bonjour", "text/plain", language="fr")
        assert entity.language == "fr"
        assert entity.value == "bonjour"

    def test_invalid_media_type(self) -> None:
        """Test that an entity cannot carry a malformed media type."""
        with pytest.raises(InvalidArgumentError):
            Entity.entity("x", "not-a-media-type")


class TestLink:
    """Tests for Link parsing and rendering."""

    def test_parse_header(self) -> None:
        """Test parsing of a Link header value with extra parameters."""
        link = Link.parse('<http://localhost:8080/next>; rel="next"; type="text/plain"; hreflang=en')
        assert link.uri == "http://localhost:8080/next"
        assert link.rel == "next"
        assert link.type == "text/plain"
        assert link.params == {"hreflang": "en"}

    def test_render_round_trip(self) -> None:
        """Test that str() produces a parseable header value."""
        link = Link(uri="http://localhost/", rel="self", title="Home")
        assert str(link) == '<http://localhost/>; rel="self"; title="Home"'
        assert Link.parse(str(link)) == link

    def test_parse_rejects_missing_reference(self) -> None:
        """Test that a value without <uri> is rejected."""
        with pytest.raises(ValueError):
            Link.parse('rel="next"')

    def test_invalid_type_is_rejected(self) -> None:
        """Test that the declared media type is validated."""
        with pytest.raises(ValidationError):
            Link(uri="http://localhost/", type="bogus")

    def test_empty_uri_is_rejected(self) -> None:
        """Test that a link needs a target."""
        with pytest.raises(ValidationError):
            Link(uri="")
