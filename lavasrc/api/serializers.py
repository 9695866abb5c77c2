from rest_framework import serializers

from lavasrc.tracks import SearchType


class LoadItemRequestSerializer(serializers.Serializer):
    identifier = serializers.CharField(max_length=2048, trim_whitespace=True)


class LoadSearchRequestSerializer(serializers.Serializer):
    query = serializers.CharField(max_length=512, trim_whitespace=True)
    types = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_types(self, value):
        try:
            return SearchType.parse(value)
        except ValueError:
            allowed = ", ".join(t.value for t in SearchType)
            raise serializers.ValidationError(f"Unknown search type. Allowed: {allowed}")


class LyricsRequestSerializer(serializers.Serializer):
    identifier = serializers.CharField(max_length=2048, trim_whitespace=True)


class LyricsLineSerializer(serializers.Serializer):
    timestamp = serializers.IntegerField()
    duration = serializers.IntegerField(allow_null=True)
    line = serializers.CharField(allow_blank=True)


class LyricsSerializer(serializers.Serializer):
    source_name = serializers.CharField()
    provider = serializers.CharField(allow_null=True)
    text = serializers.CharField(allow_null=True, allow_blank=True)
    lines = LyricsLineSerializer(many=True)
