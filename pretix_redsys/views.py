import json
import logging

from django.contrib import messages
from django.http import Http404, HttpResponse, HttpResponseBadRequest
from django.shortcuts import get_object_or_404, redirect
from django.template.loader import get_template
from django.utils.decorators import method_decorator
from django.utils.translation import gettext_lazy as _
from django.views import View
from django.views.decorators.clickjacking import xframe_options_exempt
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from pretix.base.models import Order, OrderPayment
from pretix.multidomain.urlreverse import eventreverse

from . import encrypter
from .exceptions import (
    InvalidSignature, MalformedPayload, MissingParameters, OrderNotFound,
    PaymentProcessingFailed, RedsysException,
)
from .payment import RedsysProvider

logger = logging.getLogger('pretix.plugins.redsys')


class RedsysOrderView(View):
    """Base for the buyer facing views, resolves order and payment from the URL"""

    def dispatch(self, request, *args, **kwargs):
        try:
            self.order = request.event.orders.get_with_secret_check(
                code=kwargs['order'],
                received_secret=kwargs['hash'].lower(),
                tag='plugins:pretix_redsys'
            )
        except Order.DoesNotExist:
            raise Http404('Unknown order')

        self.payment = get_object_or_404(
            self.order.payments,
            pk=self.kwargs['payment'],
            provider='redsys'
        )
        return super().dispatch(request, *args, **kwargs)

    def _order_url(self):
        return eventreverse(self.order.event, 'presale:event.order', kwargs={
            'order': self.order.code,
            'secret': self.order.secret
        })

    def _order_pay_url(self):
        return eventreverse(self.order.event, 'presale:event.order.pay', kwargs={
            'order': self.order.code,
            'secret': self.order.secret
        })


@method_decorator(xframe_options_exempt, 'dispatch')
class RedsysRedirectView(RedsysOrderView):
    """Auto-submitting form posting the signed parameters to the Redsys payment page"""

    def get(self, request, *args, **kwargs):
        if self.payment.state not in (OrderPayment.PAYMENT_STATE_CREATED, OrderPayment.PAYMENT_STATE_PENDING):
            return redirect(self._order_url())

        provider = self.payment.payment_provider
        manager = provider.build_manager(self.payment)

        try:
            form = manager.process_payment()
        except RedsysException as e:
            logger.error(f'Could not build Redsys request for payment {self.payment.full_id}: {e}')
            messages.error(request, _('We could not contact the payment provider. Please try again later.'))
            return redirect(self._order_pay_url())

        # Remember which Redsys order number this attempt was sent with
        sent = encrypter.decode(form.fields['Ds_MerchantParameters'])
        try:
            payment_info = json.loads(self.payment.info or '{}')
        except ValueError:
            payment_info = {}
        payment_info['Ds_Merchant_Order'] = sent['Ds_Merchant_Order']
        self.payment.info = json.dumps(payment_info)
        self.payment.save(update_fields=['info'])

        logger.info(f'Redirecting payment {self.payment.full_id} to Redsys as order {sent["Ds_Merchant_Order"]}')

        template = get_template('pretixplugins/redsys/redirect.html')
        ctx = {
            'request': request,
            'event': self.order.event,
            'order': self.order,
            'payment': self.payment,
            'form': form,
        }
        return HttpResponse(template.render(ctx, request=request))


@method_decorator(xframe_options_exempt, 'dispatch')
class RedsysReturnView(RedsysOrderView):
    """
    Where Redsys sends the buyer back (Ds_Merchant_UrlOK / Ds_Merchant_UrlKO).

    The payment state is only ever changed by the signed notification, never here.
    """

    def get(self, request, *args, **kwargs):
        status = kwargs.get('status')
        logger.info(f'Buyer returned from Redsys with status {status} for payment {self.payment.full_id}')

        if self.payment.state == OrderPayment.PAYMENT_STATE_CONFIRMED:
            messages.success(request, _('Payment confirmed successfully!'))
            return redirect(self._order_url())

        if status == 'ko' or self.payment.state in (OrderPayment.PAYMENT_STATE_FAILED,
                                                    OrderPayment.PAYMENT_STATE_CANCELED):
            messages.error(request, _('Your payment was not completed. Please try again or choose a different payment method.'))
            return redirect(self._order_pay_url())

        messages.info(request, _('Your payment is being processed. You will receive confirmation shortly.'))
        return redirect(self._order_url())


@csrf_exempt
@require_POST
def notify(request, *args, **kwargs):
    """Asynchronous notification Redsys posts to Ds_Merchant_MerchantURL"""
    parameters = request.POST.dict()
    logger.info(f'Redsys notification received for event {request.event.slug}: fields={sorted(parameters)}')

    provider = RedsysProvider(request.event)
    manager = provider.build_manager()

    try:
        method = manager.process_result(parameters)
    except (MissingParameters, MalformedPayload) as e:
        logger.warning(f'Rejected Redsys notification: {e}')
        return HttpResponseBadRequest(f'Invalid parameters: {e}')
    except InvalidSignature:
        logger.warning('Rejected Redsys notification: invalid signature')
        return HttpResponseBadRequest('Invalid signature')
    except OrderNotFound as e:
        logger.warning(f'Redsys notification for unknown order: {e}')
        return HttpResponse('Payment not found', status=200)
    except PaymentProcessingFailed as e:
        # Outcome recorded, Redsys must not retry
        logger.info(f'Redsys payment not authorised: {e}')
        return HttpResponse('OK', status=200)
    except RedsysException as e:
        logger.error(f'Redsys notification could not be processed: {e}')
        return HttpResponseBadRequest('Processing error')
    except Exception as e:
        logger.error(f'Redsys notification processing error: {e}', exc_info=True)
        return HttpResponse('Internal error', status=500)

    logger.info(f'Redsys notification processed: {method!r}')
    return HttpResponse('OK', status=200)
