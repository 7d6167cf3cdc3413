"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Depots
    path('depots/', views.DepotListCreateView.as_view(), name='depot-list'),
    path('depots/<int:pk>/', views.DepotDetailView.as_view(), name='depot-detail'),

    # Products
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),

    # Depot variants
    path('variants/', views.VariantListCreateView.as_view(), name='variant-list'),
    path('variants/<int:pk>/', views.VariantDetailView.as_view(), name='variant-detail'),
    path('variants/<int:pk>/on-hand/', views.VariantOnHandView.as_view(), name='variant-on-hand'),
    path('variants/<int:pk>/receive/', views.VariantReceiveView.as_view(), name='variant-receive'),
    path('variants/<int:pk>/rebuild/', views.VariantRebuildView.as_view(), name='variant-rebuild'),

    # Stock ledger
    path('stock-ledger/', views.StockLedgerListView.as_view(), name='stock-ledger'),
]
