"""Order delivery tracking: access codes, status workflow, driver sessions and live location."""
