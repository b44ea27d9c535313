from rest_framework import permissions, status
from rest_framework.generics import ListCreateAPIView, RetrieveUpdateDestroyAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from account.permissions import IsAdminRole

from .models import PricingRule
from .serializers import PricingRuleSerializer, QuoteRequestSerializer
from .services import NoMatchingRate, RateService


class PricingRuleListCreateView(ListCreateAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = PricingRuleSerializer
    queryset = PricingRule.objects.all()


class PricingRuleDetailView(RetrieveUpdateDestroyAPIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = PricingRuleSerializer
    queryset = PricingRule.objects.all()


class RateQuoteView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        serializer = QuoteRequestSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            quote = RateService.quote(data["origin"], data["destination"], data["weight"])
        except NoMatchingRate as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(quote, status=status.HTTP_200_OK)
