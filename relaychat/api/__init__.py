"""FastAPI endpoints for the chat service.

HTTP and streaming routes with async request handling. Model replies are
streamed as Server-Sent Events.

Endpoints:
    - GET /health: Service health status
    - POST /auth/register, POST /auth/login, GET /auth/validate: Accounts
    - PUT /user: Profile update
    - /chat/conversations: List, rename and delete conversations
    - GET /chat/messages: Conversation history
    - POST /chat/message: Store a user message
    - POST /chat/analyze: Extract facts about the user
    - POST /chat/stream: Streamed assistant reply
    - POST /chat/upload, GET /chat/files/{name}: Attachments
"""
