from django.urls import path

from lavasrc.api.views import LoadItemAPIView, LoadSearchAPIView, LyricsAPIView

app_name = 'lavasrc_api'

urlpatterns = [
    path('loaditem/',
         LoadItemAPIView.as_view(),
         name='load-item'),

    path('loadsearch/',
         LoadSearchAPIView.as_view(),
         name='load-search'),

    path('lyrics/',
         LyricsAPIView.as_view(),
         name='lyrics'),
]
