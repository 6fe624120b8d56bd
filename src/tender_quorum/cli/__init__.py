"""Command-line interface (``tq``)"""
