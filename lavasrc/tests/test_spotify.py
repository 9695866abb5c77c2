from unittest.mock import Mock, patch

import requests
import spotipy
from django.core.cache import cache as default_cache
from django.test import SimpleTestCase

from lavasrc.cache import TrackMetadataCache
from lavasrc.exceptions import SourceError
from lavasrc.spotify import SpotifySourceManager
from lavasrc.tests.factories import spotify_track_json
from lavasrc.tracks import (
    NO_TRACK,
    AudioPlaylist,
    AudioTrackInfo,
    ExtendedAudioTrack,
    PlaylistType,
    SearchResult,
    SearchType,
)

NOT_FOUND = spotipy.SpotifyException(404, -1, "Resource not found")


class SpotifyTestCase(SimpleTestCase):

    def setUp(self):
        self.accessor = Mock()
        self.sp = self.accessor.client
        self.sp.artist.return_value = {"id": "artist", "images": [{"url": "https://i.scdn.co/artist"}]}
        self.sp.artists.return_value = {"artists": []}
        self.manager = SpotifySourceManager(self.accessor, sp_dc="cookie")

    def tearDown(self):
        self.manager.shutdown()


class TestLoadItem(SpotifyTestCase):
    """Test Spotify identifier loading."""

    def test_unknown_identifier(self):
        """Test foreign identifiers are ignored."""
        self.assertIsNone(self.manager.load_item("https://www.youtube.com/watch?v=dQw4w9WgXcQ"))
        self.assertIsNone(self.manager.load_item("ytsearch:rick astley"))

    def test_track(self):
        """Test track URL loading."""
        track = spotify_track_json("4PTG3Z6ehGkBFwjybzWkR8", name="Never Gonna Give You Up",
                                   artist_name="Rick Astley", isrc="GBARL9300135")
        self.sp.track.return_value = track

        item = self.manager.load_item("https://open.spotify.com/intl-de/track/4PTG3Z6ehGkBFwjybzWkR8?si=abc")

        self.sp.track.assert_called_once_with("4PTG3Z6ehGkBFwjybzWkR8")
        self.assertIsInstance(item, ExtendedAudioTrack)
        self.assertEqual(item.info.title, "Never Gonna Give You Up")
        self.assertEqual(item.info.author, "Rick Astley")
        self.assertEqual(item.info.isrc, "GBARL9300135")
        self.assertEqual(item.info.length, track["duration_ms"])
        self.assertEqual(item.artist_artwork_url, "https://i.scdn.co/artist")
        self.assertEqual(item.album_name, track["album"]["name"])
        self.assertEqual(item.source_name, "spotify")
        self.assertFalse(item.is_preview)

    def test_user_url(self):
        """Test legacy user playlist URLs."""
        self.sp.playlist.side_effect = NOT_FOUND
        self.manager.load_item("https://open.spotify.com/user/someone/playlist/37i9dQZF1DXcBWIGoYBM5M")
        self.sp.playlist.assert_called_once_with("37i9dQZF1DXcBWIGoYBM5M")

    def test_preview(self):
        """Test spprev loads a 30 s preview."""
        self.sp.track.return_value = spotify_track_json("abc")
        item = self.manager.load_item("spprev:https://open.spotify.com/track/abc")
        self.assertEqual(item.info.length, 30000)
        self.assertTrue(item.is_preview)

    def test_not_found(self):
        """Test unknown tracks give NO_TRACK."""
        self.sp.track.side_effect = NOT_FOUND
        self.assertEqual(self.manager.load_item("https://open.spotify.com/track/abc"), NO_TRACK)

    def test_transport_error(self):
        """Test transport errors raise SourceError."""
        self.sp.track.side_effect = requests.exceptions.ConnectionError()
        with self.assertRaises(SourceError):
            self.manager.load_item("https://open.spotify.com/track/abc")

    @patch("lavasrc.spotify.resolve_redirect")
    def test_share_link(self, mock_redirect):
        """Test share links are followed."""
        mock_redirect.return_value = "https://open.spotify.com/track/abc?si=1"
        self.sp.track.return_value = spotify_track_json("abc")

        item = self.manager.load_item("https://spotify.link/ZxKiPOmHfDb")

        self.assertEqual(item.identifier, "abc")

    @patch("lavasrc.spotify.resolve_redirect")
    def test_share_link_elsewhere(self, mock_redirect):
        """Test share links leaving Spotify give None."""
        mock_redirect.return_value = "https://example.com/"
        self.assertIsNone(self.manager.load_item("https://spotify.link/ZxKiPOmHfDb"))
        mock_redirect.return_value = None
        self.assertIsNone(self.manager.load_item("https://spotify.link/ZxKiPOmHfDb"))

    def test_database_is_used_for_tracks(self):
        """Test the database serves tracks when configured."""
        database = Mock()
        database.get_spotify_track_info.return_value = [spotify_track_json("abc")]
        manager = SpotifySourceManager(self.accessor, database=database)

        item = manager.load_item("https://open.spotify.com/track/abc")

        self.assertEqual(item.identifier, "abc")
        database.get_spotify_track_info.assert_called_once_with("abc")
        self.sp.track.assert_not_called()

    def test_cache_serves_repeated_loads(self):
        """Test a repeated load hits the API once."""
        default_cache.clear()
        self.sp.track.return_value = spotify_track_json("abc")
        manager = SpotifySourceManager(self.accessor, cache=TrackMetadataCache(namespace="test:spotify"))

        first = manager.load_item("https://open.spotify.com/track/abc")
        second = manager.load_item("https://open.spotify.com/track/abc")

        self.assertEqual(first.identifier, "abc")
        self.assertEqual(second.identifier, "abc")
        self.sp.track.assert_called_once_with("abc")

    def test_cache_serves_album_tracks(self):
        """Test only uncached album tracks are fetched."""
        default_cache.clear()
        cache = TrackMetadataCache(namespace="test:spotify")
        cache.put("t1", spotify_track_json("t1"))
        self.sp.tracks.return_value = {"tracks": [spotify_track_json("t2")]}
        manager = SpotifySourceManager(self.accessor, cache=cache)

        tracks = manager._several_tracks(["t1", "t2"])

        self.assertEqual([t["id"] for t in tracks], ["t1", "t2"])
        self.sp.tracks.assert_called_once_with(["t2"])
        self.assertEqual(cache.get("t2")["id"], "t2")


class TestSearchAndRecommendations(SpotifyTestCase):
    """Test spsearch and sprec."""

    def test_search(self):
        """Test spsearch results."""
        track = spotify_track_json("abc", artist_id="artist")
        self.sp.search.return_value = {"tracks": {"items": [track]}}
        self.sp.artists.return_value = {"artists": [{"id": "artist", "images": [{"url": "img"}]}]}

        item = self.manager.load_item("spsearch: never gonna")

        self.sp.search.assert_called_once_with("never gonna", limit=20, type="track")
        self.assertIsInstance(item, AudioPlaylist)
        self.assertEqual(item.name, "Search results for: never gonna")
        self.assertTrue(item.is_search_result)
        self.assertEqual(item.tracks[0].artist_artwork_url, "img")

    def test_search_without_results(self):
        """Test empty searches give NO_TRACK."""
        self.sp.search.return_value = {"tracks": {"items": []}}
        self.assertEqual(self.manager.load_item("spsearch:zzzz"), NO_TRACK)

    def test_recommendations(self):
        """Test sprec parameters are passed to the API."""
        self.sp.recommendations.return_value = {"tracks": [spotify_track_json("a"), spotify_track_json("b")]}

        item = self.manager.load_item("sprec:seed_tracks=a,b&limit=5&market=DE")

        self.sp.recommendations.assert_called_once_with(seed_tracks=["a", "b"], limit=5, market="DE")
        self.assertEqual(item.type, PlaylistType.RECOMMENDATIONS)
        self.assertEqual([t.identifier for t in item.tracks], ["a", "b"])

    def test_recommendations_bad_limit(self):
        """Test a non-numeric limit gives NO_TRACK."""
        self.assertEqual(self.manager.load_item("sprec:seed_tracks=abc&limit=ten"), NO_TRACK)
        self.sp.recommendations.assert_not_called()


class TestCollections(SpotifyTestCase):
    """Test albums, playlists and artists."""

    def _album(self):
        return {
            "id": "alb",
            "name": "Whenever You Need Somebody",
            "artists": [{"id": "artist", "name": "Rick Astley"}],
            "images": [{"url": "https://i.scdn.co/album"}],
            "external_urls": {"spotify": "https://open.spotify.com/album/alb"},
            "total_tracks": 2,
        }

    def test_album(self):
        """Test album loading."""
        self.sp.album.return_value = self._album()
        self.sp.album_tracks.return_value = {"items": [{"id": "t1"}, {"id": "t2"}], "next": None}
        self.sp.tracks.return_value = {"tracks": [spotify_track_json("t1"), spotify_track_json("t2")]}

        item = self.manager.load_item("https://open.spotify.com/album/alb")

        self.assertEqual(item.type, PlaylistType.ALBUM)
        self.assertEqual(item.name, "Whenever You Need Somebody")
        self.assertEqual(item.author, "Rick Astley")
        self.assertEqual(item.total_tracks, 2)
        self.assertEqual([t.identifier for t in item.tracks], ["t1", "t2"])
        for track in item.tracks:
            self.assertEqual(track.album_name, "Whenever You Need Somebody")
            self.assertEqual(track.album_url, "https://open.spotify.com/album/alb")
            self.assertEqual(track.info.artwork_url, "https://i.scdn.co/album")
            self.assertEqual(track.artist_artwork_url, "https://i.scdn.co/artist")

    def test_album_page_limit(self):
        """Test album paging stops at the page limit."""
        self.sp.album.return_value = self._album()
        self.sp.album_tracks.return_value = {"items": [{"id": "t1"}], "next": "https://api.spotify.com/next"}
        self.sp.tracks.return_value = {"tracks": [spotify_track_json("t1")]}
        manager = SpotifySourceManager(self.accessor, album_page_limit=2)

        item = manager.load_item("https://open.spotify.com/album/alb")

        self.assertEqual(self.sp.album_tracks.call_count, 2)
        self.assertEqual(self.sp.album_tracks.call_args_list[1].kwargs["offset"], 50)
        self.assertEqual(len(item.tracks), 2)

    def test_album_not_found(self):
        """Test unknown albums give NO_TRACK."""
        self.sp.album.side_effect = NOT_FOUND
        self.assertEqual(self.manager.load_item("https://open.spotify.com/album/alb"), NO_TRACK)

    def test_playlist_skips_episodes_and_keeps_local_tracks(self):
        """Test playlists drop episodes and keep local files."""
        self.sp.playlist.return_value = {
            "name": "Mix",
            "owner": {"display_name": "someone"},
            "images": [],
            "tracks": {"total": 4},
            "external_urls": {"spotify": "https://open.spotify.com/playlist/pl"},
        }
        local = spotify_track_json("x", is_local=True)
        local["id"] = None
        self.sp.playlist_items.return_value = {
            "items": [
                {"track": spotify_track_json("t1")},
                {"track": {"type": "episode", "id": "ep"}},
                {"track": None},
                {"track": local},
            ],
            "next": None,
        }

        item = self.manager.load_item("https://open.spotify.com/playlist/pl")

        self.sp.playlist_items.assert_called_once_with("pl", limit=100, offset=0)
        self.assertEqual(item.type, PlaylistType.PLAYLIST)
        self.assertEqual(item.author, "someone")
        self.assertEqual([t.identifier for t in item.tracks], ["t1", "local"])
        self.assertTrue(item.tracks[1].is_local)

    def test_artist(self):
        """Test artist top tracks."""
        self.sp.artist.return_value = {
            "id": "artist", "name": "Rick Astley", "images": [{"url": "img"}],
            "external_urls": {"spotify": "https://open.spotify.com/artist/artist"},
        }
        self.sp.artist_top_tracks.return_value = {"tracks": [spotify_track_json("t1")]}
        manager = SpotifySourceManager(self.accessor, country_code="DE")

        item = manager.load_item("https://open.spotify.com/artist/artist")

        self.sp.artist_top_tracks.assert_called_once_with("artist", country="DE")
        self.assertEqual(item.name, "Rick Astley's Top Tracks")
        self.assertEqual(item.type, PlaylistType.ARTIST)
        self.assertEqual(item.tracks[0].artist_artwork_url, "img")


class TestLoadSearch(SpotifyTestCase):
    """Test typed search."""

    def test_requires_prefix(self):
        """Test queries without spsearch are ignored."""
        self.assertIsNone(self.manager.load_search("rick", []))

    def test_autocomplete(self):
        """Test typed search results."""
        self.sp.search.return_value = {
            "tracks": {"items": [spotify_track_json("t1")]},
            "albums": {"items": [{"name": "Album", "artists": [{"name": "Rick"}], "images": []}]},
        }

        result = self.manager.load_search("spsearch:rick", [SearchType.TRACK, SearchType.ALBUM, SearchType.TEXT])

        self.assertEqual(self.sp.search.call_args.kwargs["type"], "track,album")
        self.assertEqual(len(result.tracks), 1)
        self.assertEqual(result.albums[0].name, "Album")
        self.assertEqual(result.albums[0].author, "Rick")
        self.assertEqual(result.artists, [])

    def test_all_types_by_default(self):
        """Test omitted types search everything."""
        self.sp.search.return_value = {}
        self.manager.load_search("spsearch:rick", [])
        self.assertEqual(self.sp.search.call_args.kwargs["type"], "album,artist,playlist,track")

    def test_api_error(self):
        """Test API errors give an empty result."""
        self.sp.search.side_effect = spotipy.SpotifyException(400, -1, "bad request")
        self.assertIs(self.manager.load_search("spsearch:rick", []), SearchResult.EMPTY)


@patch("lavasrc.spotify.fetch_json")
class TestLyrics(SpotifyTestCase):
    """Test Spotify lyrics."""

    LYRICS = {"lyrics": {"lines": [
        {"startTimeMs": "1000", "words": "We're no strangers to love"},
        {"startTimeMs": "4500", "words": "You know the rules"},
    ]}}

    def setUp(self):
        super().setUp()
        token = patch.object(self.manager.web_player, "get_token", return_value="web-token")
        token.start()
        self.addCleanup(token.stop)

    def test_spotify_track(self, mock_fetch):
        """Test lyrics for a Spotify track."""
        mock_fetch.return_value = self.LYRICS
        track = self.manager.parse_track(spotify_track_json("abc"), False)

        lyrics = self.manager.load_lyrics(track)

        self.assertIn("color-lyrics/v2/track/abc", mock_fetch.call_args.args[1])
        self.assertEqual(mock_fetch.call_args.kwargs["headers"]["Authorization"], "Bearer web-token")
        self.assertEqual(lyrics.provider, "MusixMatch")
        self.assertEqual(lyrics.source_name, "spotify")
        self.assertEqual([(l.timestamp, l.line) for l in lyrics.lines],
                         [(1000, "We're no strangers to love"), (4500, "You know the rules")])

    def test_other_source_matched_by_isrc(self, mock_fetch):
        """Test other tracks are matched by ISRC."""
        mock_fetch.return_value = self.LYRICS
        self.sp.search.return_value = {"tracks": {"items": [spotify_track_json("matched")]}}
        track = ExtendedAudioTrack(
            AudioTrackInfo("Never Gonna Give You Up", "Rick Astley", 213000, "123", isrc="GBARL9300135"),
            source_name="deezer",
        )

        self.assertIsNotNone(self.manager.load_lyrics(track))

        self.sp.search.assert_called_once_with("isrc:GBARL9300135", limit=20, type="track")
        self.assertIn("track/matched", mock_fetch.call_args.args[1])

    def test_other_source_without_match(self, mock_fetch):
        """Test unmatched tracks give None."""
        self.sp.search.return_value = {"tracks": {"items": []}}
        track = ExtendedAudioTrack(AudioTrackInfo("zzz", "nobody", 1000, "1"), source_name="deezer")

        self.assertIsNone(self.manager.load_lyrics(track))
        mock_fetch.assert_not_called()

    def test_no_lyrics(self, mock_fetch):
        """Test missing lyrics give None."""
        mock_fetch.return_value = None
        track = self.manager.parse_track(spotify_track_json("abc"), False)
        self.assertIsNone(self.manager.load_lyrics(track))
