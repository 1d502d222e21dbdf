"""
Application services for RhymeRumble, one package per feature area.

- friendship: friend requests, responses, blocking and removal
- leaderboard: ranking queries and snapshot refreshes
- poems: themes, poems, likes and closing battles
- profiles: sign-up, lookup and editing of public profiles
- shared: base service/repository classes and domain exceptions
"""
