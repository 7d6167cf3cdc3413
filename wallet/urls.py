"""
URL routing for wallet API endpoints.
"""
from django.urls import path
from . import views

app_name = 'wallet'

urlpatterns = [
    path('members/', views.MemberListView.as_view(), name='member-list'),
    path('members/<int:pk>/wallet/', views.WalletBalanceView.as_view(), name='wallet-balance'),
    path('members/<int:pk>/wallet/transactions/',
         views.WalletTransactionListView.as_view(), name='wallet-transactions'),
    path('members/<int:pk>/wallet/credit/', views.WalletCreditView.as_view(), name='wallet-credit'),
    path('members/<int:pk>/wallet/debit/', views.WalletDebitView.as_view(), name='wallet-debit'),
    path('members/<int:pk>/wallet/rebuild/', views.WalletRebuildView.as_view(), name='wallet-rebuild'),
]
