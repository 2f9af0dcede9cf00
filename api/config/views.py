from django.http import HttpResponse
from django.views.decorators.http import require_GET


@require_GET
def ping(request):
    return HttpResponse("pong", content_type="text/plain")
