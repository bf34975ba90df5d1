"""InvoicePe payments backend."""
