"""acmekit tests"""
