"""
                Restaurant POS Backend

REST backend for a restaurant point of sale: menu, dine-in and
QR guest orders, cash and Midtrans payments, staff accounts and
sales reporting, with a hybrid Mock/Real service architecture.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
