from django.db import migrations, models

from lavasrc.models import SPOTIFY_TRACKS_TABLE


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SpotifyTrackMetadata",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("album_id", models.CharField(max_length=100)),
                ("artist1_id", models.CharField(max_length=100)),
                ("artist2_id", models.CharField(blank=True, max_length=100, null=True)),
                ("artist3_id", models.CharField(blank=True, max_length=100, null=True)),
                ("artist4_id", models.CharField(blank=True, max_length=100, null=True)),
                ("track_id", models.CharField(max_length=100, unique=True)),
                ("track_explicit", models.BooleanField(default=False)),
                ("track_popularity", models.PositiveSmallIntegerField(default=0)),
                ("metadata", models.TextField()),
            ],
            options={
                "db_table": SPOTIFY_TRACKS_TABLE,
                "indexes": [
                    models.Index(fields=["album_id"], name="lavasrc_sp_album_idx"),
                    models.Index(fields=["artist1_id"], name="lavasrc_sp_artist1_idx"),
                    models.Index(fields=["artist2_id"], name="lavasrc_sp_artist2_idx"),
                    models.Index(fields=["artist3_id"], name="lavasrc_sp_artist3_idx"),
                    models.Index(fields=["artist4_id"], name="lavasrc_sp_artist4_idx"),
                ],
            },
        ),
    ]
