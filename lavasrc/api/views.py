import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from lavasrc.api.serializers import (
    LoadItemRequestSerializer,
    LoadSearchRequestSerializer,
    LyricsRequestSerializer,
    LyricsSerializer,
)
from lavasrc.exceptions import LavaSrcError
from lavasrc.plugin import get_plugin
from lavasrc.tracks import item_to_dict

logger = logging.getLogger("lavasrc")


class LavaSrcAPIView(APIView):
    """Validates query params and turns upstream failures into 502s."""

    permission_classes = [AllowAny]
    request_serializer_class = None

    def get(self, request):
        params = self.request_serializer_class(data=request.query_params)
        if not params.is_valid():
            return Response(params.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            payload = self.load(get_plugin(), **params.validated_data)
        except LavaSrcError as exc:
            logger.warning("%s failed: %s", type(self).__name__, exc)
            return Response({"error": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        if payload is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(payload)

    def load(self, plugin, **params):
        raise NotImplementedError


class LoadItemAPIView(LavaSrcAPIView):
    """
    Resolve an identifier (URL or prefixed query) to a track or playlist.

    Query Parameters:
        - identifier: e.g. ``https://open.spotify.com/track/...`` or ``spsearch:foo``
    """

    request_serializer_class = LoadItemRequestSerializer

    def load(self, plugin, identifier):
        return item_to_dict(plugin.load_item(identifier))


class LoadSearchAPIView(LavaSrcAPIView):
    """
    Typed search (tracks, albums, artists, playlists, texts).

    Query Parameters:
        - query: e.g. ``spsearch:never gonna``
        - types: comma separated, e.g. ``track,album`` (default: all)
    """

    request_serializer_class = LoadSearchRequestSerializer

    def load(self, plugin, query, types):
        result = plugin.load_search(query, types)
        if result is None or result.is_empty():
            return None
        return result.to_dict()


class LyricsAPIView(LavaSrcAPIView):
    """Lyrics for the track an identifier resolves to."""

    request_serializer_class = LyricsRequestSerializer

    def load(self, plugin, identifier):
        lyrics = plugin.load_lyrics_for(identifier)
        if lyrics is None:
            return None
        return LyricsSerializer(lyrics).data
