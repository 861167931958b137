from django.urls import path
from . import views

# Matched top to bottom: the static countries/* sub-paths must stay above
# the countries/<name> wildcard so 'image' isn't treated as a country name.
urlpatterns = [
    path('countries/refresh', views.refresh_countries),
    path('countries/image', views.get_summary_image),
    path('countries/summary', views.get_summary),
    path('countries', views.list_countries),
    path('countries/<str:name>', views.country_detail),
    path('status', views.status_view),
]
