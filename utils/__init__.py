# Utility modules for the AMM trade broker
