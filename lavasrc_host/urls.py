from django.urls import include, path

urlpatterns = [
    path("v4/", include("lavasrc.api.urls")),
]
