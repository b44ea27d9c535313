from django.urls import path

from .views import PricingRuleDetailView, PricingRuleListCreateView, RateQuoteView

urlpatterns = [
    path("admin/pricing-rules/", PricingRuleListCreateView.as_view(), name="pricing-rule-list"),
    path("admin/pricing-rules/<uuid:pk>/", PricingRuleDetailView.as_view(), name="pricing-rule-detail"),
    path("rates/quote/", RateQuoteView.as_view(), name="rate-quote"),
]
