"""
Tests for YouTube URL parsing
"""

import pytest

from core.errors import ValidationError
from core.provider import YouTubeProvider, parse_playlist_id, parse_video_id, playlist_url, video_url

VIDEO = 'dQw4w9WgXcQ'


@pytest.mark.parametrize('url', [
    VIDEO,
    f"https://www.youtube.com/watch?v={VIDEO}",
    f"https://youtube.com/watch?v={VIDEO}&t=42s",
    f"https://m.youtube.com/watch?v={VIDEO}",
    f"https://music.youtube.com/watch?v={VIDEO}&list=RDAMVM{VIDEO}",
    f"https://youtu.be/{VIDEO}",
    f"https://youtu.be/{VIDEO}?si=abc",
    f"https://www.youtube.com/shorts/{VIDEO}",
    f"https://www.youtube.com/embed/{VIDEO}",
    f"https://www.youtube.com/live/{VIDEO}",
    f"www.youtube.com/watch?v={VIDEO}",
    f"  https://youtu.be/{VIDEO}  ",
])
def test_parse_video_id(url):
    assert parse_video_id(url) == VIDEO


@pytest.mark.parametrize('url', [
    '',
    None,
    'not a url',
    'https://example.com/watch?v=dQw4w9WgXcQ',
    'https://www.youtube.com/watch?v=short',
    'https://www.youtube.com/channel/UC1234567890',
    'https://www.youtube.com/playlist?list=PL1234567890abcdef',
])
def test_parse_video_id_rejects(url):
    with pytest.raises(ValidationError):
        parse_video_id(url)


@pytest.mark.parametrize('url,expected', [
    ('https://www.youtube.com/playlist?list=PL1234567890abcdef', 'PL1234567890abcdef'),
    ('youtube.com/playlist?list=OLAK5uy_abcdefghijk', 'OLAK5uy_abcdefghijk'),
    ('PL1234567890abcdef', 'PL1234567890abcdef'),
    (f"https://www.youtube.com/watch?v={VIDEO}&list=PL1234567890abcdef", None),
    ('https://example.com/playlist?list=PL1234567890abcdef', None),
    ('https://www.youtube.com/playlist?list=short', None),
    (VIDEO, None),
])
def test_parse_playlist_id(url, expected):
    assert parse_playlist_id(url) == expected


def test_canonical_urls():
    assert video_url(VIDEO) == f"https://www.youtube.com/watch?v={VIDEO}"
    assert playlist_url('PL1234567890') == "https://www.youtube.com/playlist?list=PL1234567890"


class TestYouTubeProvider:
    def test_cookie_header_in_ydl_options(self):
        options = YouTubeProvider(cookie='SID=abc')._ydl_options(format='bestaudio/best')

        assert options['http_headers'] == {'Cookie': 'SID=abc'}
        assert options['format'] == 'bestaudio/best'
        assert options['noplaylist'] is True

    def test_no_cookie(self):
        assert 'http_headers' not in YouTubeProvider()._ydl_options()

    @pytest.mark.asyncio
    async def test_resolve_maps_extracted_fields(self, monkeypatch):
        provider = YouTubeProvider()

        async def fake_extract(url, **extra):
            return {'title': 'Song', 'channel': 'Artist', 'duration': 212.6, 'webpage_url': url}

        monkeypatch.setattr(provider, '_extract', fake_extract)
        info = await provider.resolve(VIDEO)

        assert info.title == 'Song'
        assert info.owner_name == 'Artist'
        assert info.duration_seconds in (212, 213)
        assert VIDEO in info.url

    @pytest.mark.asyncio
    async def test_resolve_playlist_skips_unavailable_entries(self, monkeypatch):
        provider = YouTubeProvider()
        seen = {}

        async def fake_extract(url, **extra):
            seen.update(extra)
            return {
                'title': 'Road Trip',
                'entries': [
                    {'id': VIDEO, 'title': 'One', 'duration': 60},
                    None,
                    {'id': 'bad', 'title': '[Deleted video]'},
                    {'id': 'kJQP7kiw5Fk', 'title': 'Two'},
                ],
            }

        monkeypatch.setattr(provider, '_extract', fake_extract)
        playlist = await provider.resolve_playlist('PL1234567890abcdef')

        assert seen['extract_flat'] == 'in_playlist'
        assert seen['noplaylist'] is False
        assert playlist.title == 'Road Trip'
        assert [entry.video_id for entry in playlist.entries] == [VIDEO, 'kJQP7kiw5Fk']
        assert playlist.entries[0].info.title == 'One'
        assert playlist.entries[1].url == video_url('kJQP7kiw5Fk')
