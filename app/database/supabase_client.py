from supabase import acreate_client, AsyncClient
from app.config import settings


class SupabaseClient:
    _client: AsyncClient = None

    @classmethod
    async def get_client(cls) -> AsyncClient:
        if cls._client is None:
            cls._client = await acreate_client(settings.supabase_url, settings.supabase_key)
        return cls._client


async def get_supabase() -> AsyncClient:
    return await SupabaseClient.get_client()
