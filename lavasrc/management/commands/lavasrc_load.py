import json

from django.core.management.base import BaseCommand, CommandError

from lavasrc.exceptions import LavaSrcError
from lavasrc.plugin import get_plugin
from lavasrc.tracks import SearchType, item_to_dict


class Command(BaseCommand):
    """Load an identifier through the enabled sources and print the result as JSON."""

    help = "Resolve a catalog URL or prefixed query (spsearch:, amsearch:, dzisrc: ...)"

    def add_arguments(self, parser):
        parser.add_argument("identifier", help="URL or prefixed query")
        parser.add_argument("--search", action="store_true", help="Run a typed search instead of a load")
        parser.add_argument(
            "--types",
            default="",
            help="Comma separated search types for --search (track,album,artist,playlist,text)",
        )
        parser.add_argument("--lyrics", action="store_true", help="Print lyrics for the loaded track")

    # ------------------------------------------------------------------
    def handle(self, *args, **opts):
        plugin = get_plugin()
        identifier = opts["identifier"]

        try:
            if opts["search"]:
                payload = self.search(plugin, identifier, opts["types"])
            elif opts["lyrics"]:
                lyrics = plugin.load_lyrics_for(identifier)
                payload = lyrics.to_dict() if lyrics else None
            else:
                payload = item_to_dict(plugin.load_item(identifier))
        except LavaSrcError as exc:
            raise CommandError(str(exc)) from exc

        if payload is None:
            self.stderr.write(f"No matches for {identifier}")
            return
        self.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False))

    def search(self, plugin, query, raw_types):
        try:
            types = SearchType.parse(raw_types)
        except ValueError as exc:
            raise CommandError(f"Invalid --types: {raw_types}") from exc
        result = plugin.load_search(query, types)
        if result is None or result.is_empty():
            return None
        return result.to_dict()
