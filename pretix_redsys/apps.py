from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _

__version__ = '1.0.0'


class PluginApp(AppConfig):
    name = 'pretix_redsys'
    verbose_name = 'Payment Provider Redsys'

    class PretixPluginMeta:
        name = _('Redsys')
        author = 'Jorge Gomes'
        category = 'PAYMENT'
        description = _('Accept card payments through the Redsys virtual POS (TPV Virtual)')
        visible = True
        version = __version__
        compatibility = "pretix>=4.0.0"

    def ready(self):
        from . import signals  # noqa


default_app_config = 'pretix_redsys.PluginApp'
