"""
Host adapters — The media server's library registry behind one interface.
"""
