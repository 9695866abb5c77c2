from django.core.management.base import BaseCommand, CommandError

from lavasrc.cache import TrackMetadataCache


class Command(BaseCommand):
    help = "Invalidate cached Spotify track metadata"

    def add_arguments(self, parser):
        parser.add_argument(
            "--invalidate",
            nargs="+",
            metavar="TRACK_ID",
            help="Spotify track ids to drop from the cache",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="Drop every cached track",
        )

    def handle(self, *args, **options):
        track_ids = options.get("invalidate") or []
        if not track_ids and not options["all"]:
            raise CommandError("Use --invalidate TRACK_ID ... or --all.")

        cache = TrackMetadataCache.from_settings()
        if options["all"]:
            cache.invalidate_all()
            self.stdout.write(self.style.SUCCESS("Invalidated all cached tracks."))
            return

        for track_id in track_ids:
            cache.invalidate(track_id)
        self.stdout.write(self.style.SUCCESS(f"Invalidated {len(track_ids)} cached track(s)."))
