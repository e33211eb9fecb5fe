"""Hosts Domain - host accounts, booking links, meeting types and booking quota"""
