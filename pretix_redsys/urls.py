from django.urls import include, re_path

from .views import RedsysRedirectView, RedsysReturnView, notify

event_patterns = [
    re_path(r'^redsys/', include([
        re_path(
            r'^redirect/(?P<order>[^/]+)/(?P<hash>[^/]+)/(?P<payment>[0-9]+)/$',
            RedsysRedirectView.as_view(),
            name='redirect'
        ),
        re_path(
            r'^return/(?P<order>[^/]+)/(?P<hash>[^/]+)/(?P<payment>[0-9]+)/(?P<status>ok|ko)/$',
            RedsysReturnView.as_view(),
            name='return'
        ),
        # Ds_Merchant_MerchantURL, called server to server by Redsys
        re_path(r'^notify/$', notify, name='notify'),
    ])),
]
